"""
Recall

Semantic retrieval for chat: indexes messages as chunked vector records and
answers queries with a ranked, token-bounded context.

Ranking signals:
- Raw similarity of a message's best chunk
- Recency (exponential decay per hour)
- Channel affinity (boost for the channel being searched)
- Thread affinity (replies and their parents rank together)

Usage:
    from recall.common import load_config
    from recall.service import RecallService
    from recall.retriever import Searcher, ContextWindowAssembler
    from recall.indexer import Chunker, IndexingPipeline
"""

__version__ = "0.1.0"
