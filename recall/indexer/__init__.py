"""
Indexer - Message to Vector Records

Key Components:
- Chunker: Sentence-aware splitting and reconstruction
- IndexingPipeline: Chunk, embed and upsert messages (single or batched)
"""

from .chunker import Chunker
from .pipeline import BatchResult, IndexingPipeline

__all__ = [
    "Chunker",
    "BatchResult",
    "IndexingPipeline",
]
