"""
Retriever - Ranked Message Retrieval

Key Components:
- Searcher: Retrieves candidates and ranks them by similarity, recency,
  channel and thread
- ContextWindowAssembler: Token-budgeted selection for prompting
- Synthesizer: Rate-limited LLM answers over the context window

Pipeline:
1. Embed the query and fetch oversampled candidates
2. Merge chunks into messages, filter and score
3. Fill the context window up to the token budget
4. Generate an answer (optional)
"""

from .context_window import ContextWindow, ContextWindowAssembler
from .pagination import SearchPage, SearchRequest
from .searcher import ParentContext, RankedMessage, Searcher
from .synthesizer import SynthesisResult, Synthesizer

__all__ = [
    "Searcher",
    "RankedMessage",
    "ParentContext",
    "ContextWindowAssembler",
    "ContextWindow",
    "SearchRequest",
    "SearchPage",
    "Synthesizer",
    "SynthesisResult",
]
