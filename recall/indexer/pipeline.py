"""
Indexing Pipeline

Message → Chunker → EmbeddingService → VectorIndex.

Every chunk becomes one vector record keyed "{messageId}_chunk_{chunkIndex}",
so re-indexing a message overwrites its records in place.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..common.embedding_service import EmbeddingService
from ..common.schemas import Chunk, Message, MessageMetadata, validate_message, validate_metadata
from ..common.vector_client import VectorIndex, VectorRecord
from .chunker import Chunker

logger = logging.getLogger("recall.indexer.pipeline")

DEFAULT_BATCH_SIZE = 100


@dataclass
class BatchResult:
    """Outcome of indexing one message inside index_batch"""
    message_id: str
    success: bool
    error: Optional[str] = None


class IndexingPipeline:
    """
    Writes messages into the vector index.

    Failure model:
    - index_message: any error aborts that message and is raised
    - index_batch: validation errors are raised before any network call;
      an embedding/upsert failure marks every message in the batch failed
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        chunker: Optional[Chunker] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """
        Initialize pipeline.

        Args:
            embedding_service: Embeds chunk contents
            vector_index: Destination index
            chunker: Text chunker (default settings if omitted)
            batch_size: Max chunks per embed/upsert sub-batch
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._embedding = embedding_service
        self._index = vector_index
        self._chunker = chunker or Chunker()
        self._batch_size = batch_size

    async def index_message(
        self,
        message_id: str,
        content: str,
        metadata: Union[MessageMetadata, Dict[str, Any]],
    ) -> int:
        """
        Chunk, embed and upsert a single message.

        Args:
            message_id: Message id (overrides any id inside metadata)
            content: Message text
            metadata: channelId, userId, timestamp, replyToId

        Returns:
            Number of vector records written
        """
        meta = validate_metadata(metadata, message_id=message_id)

        chunks = self._chunker.chunk(content, meta)
        if not chunks:
            logger.debug("Message %s has no indexable content", message_id)
            return 0

        embeddings = await self._embedding.embed([c.content for c in chunks])
        await self._index.upsert_batch(self._to_records(chunks, embeddings))

        logger.debug("Indexed message %s (%d chunks)", message_id, len(chunks))
        return len(chunks)

    async def index_batch(self, messages: List[Union[Message, Dict[str, Any]]]) -> List[BatchResult]:
        """
        Index many messages with bounded request sizes.

        All chunks are computed up front, then embedded and upserted in
        sub-batches of batch_size, concurrently.

        Returns:
            One BatchResult per input message, in input order
        """
        if not messages:
            return []

        validated = [validate_message(m) for m in messages]

        all_chunks: List[Chunk] = []
        for message in validated:
            all_chunks.extend(self._chunker.chunk(message.content, message.to_metadata()))

        try:
            sub_batches = [
                all_chunks[i:i + self._batch_size]
                for i in range(0, len(all_chunks), self._batch_size)
            ]
            await asyncio.gather(*(self._write_sub_batch(b) for b in sub_batches))
        except Exception as e:
            logger.error("Batch indexing of %d messages failed: %s", len(validated), e)
            return [BatchResult(message_id=m.id, success=False, error=str(e)) for m in validated]

        logger.info("Indexed %d messages (%d chunks)", len(validated), len(all_chunks))
        return [BatchResult(message_id=m.id, success=True) for m in validated]

    async def _write_sub_batch(self, chunks: List[Chunk]) -> None:
        embeddings = await self._embedding.embed([c.content for c in chunks])
        await self._index.upsert_batch(self._to_records(chunks, embeddings))

    @staticmethod
    def _to_records(chunks: List[Chunk], embeddings: List[List[float]]) -> List[VectorRecord]:
        if len(chunks) != len(embeddings):
            raise RuntimeError(f"Embedding count mismatch: {len(embeddings)} vectors for {len(chunks)} chunks")
        return [
            VectorRecord(id=c.record_id, values=vec, metadata=c.to_metadata())
            for c, vec in zip(chunks, embeddings)
        ]
