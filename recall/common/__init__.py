"""
Recall Common Module

Shared infrastructure for the indexer and the retriever.
"""

from .config import RecallConfig, load_config
from .embedding_service import EmbeddingService
from .errors import RateLimitExceeded, RecallError, SynthesisError, ValidationError
from .vector_client import InMemoryVectorIndex, PineconeIndexClient, VectorIndex

__all__ = [
    "RecallConfig",
    "load_config",
    "EmbeddingService",
    "RecallError",
    "ValidationError",
    "RateLimitExceeded",
    "SynthesisError",
    "VectorIndex",
    "PineconeIndexClient",
    "InMemoryVectorIndex",
]
