"""
RecallService

Single entry point for the chat backend: wires the indexing pipeline, the
ranking engine, the context window assembler and the synthesizer from one
RecallConfig.

Usage:
    service = RecallService.from_config(load_config())
    await service.index_message("m1", "hello", {"channelId": "general", ...})
    page = await service.search({"query": "deploy", "channel_id": "general"})
    await service.close()
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from .common.config import RecallConfig
from .common.embedding_service import EmbeddingService
from .common.llm_client import LLMClient
from .common.rate_limiter import RateLimiter
from .common.schemas import Message, MessageMetadata
from .common.vector_client import InMemoryVectorIndex, PineconeIndexClient, VectorIndex
from .indexer.chunker import Chunker
from .indexer.pipeline import BatchResult, IndexingPipeline
from .retriever.context_window import ContextWindow, ContextWindowAssembler
from .retriever.pagination import SearchPage, SearchRequest, paginate, validate_request
from .retriever.searcher import RankedMessage, Searcher
from .retriever.synthesizer import SynthesisResult, Synthesizer

logger = logging.getLogger("recall.service")


def create_vector_index(config: RecallConfig) -> VectorIndex:
    """Build the configured vector index backend"""
    backend = (config.vector_index.backend or "pinecone").lower()
    if backend == "memory":
        return InMemoryVectorIndex()
    if backend == "pinecone":
        return PineconeIndexClient(
            host=config.vector_index.host,
            api_key=config.vector_index.api_key,
            namespace=config.vector_index.namespace,
            timeout=config.vector_index.timeout,
        )
    raise ValueError(f"Unknown vector index backend: {backend}")


class RecallService:
    """Facade over the write path and the read path"""

    def __init__(
        self,
        config: RecallConfig,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        rate_limiter: Optional[RateLimiter] = None,
        llm_client: Optional[LLMClient] = None,
    ):
        self._config = config
        self._index = vector_index
        self._limiter = rate_limiter

        chunker = Chunker()
        self.pipeline = IndexingPipeline(
            embedding_service,
            vector_index,
            chunker=chunker,
            batch_size=config.indexing.batch_size,
        )
        self.searcher = Searcher(embedding_service, vector_index, chunker=chunker, ranking=config.ranking)
        self.context = ContextWindowAssembler(self.searcher, config.context)

        self.synthesizer = None
        if rate_limiter is not None and llm_client is not None:
            self.synthesizer = Synthesizer(self.context, llm_client, rate_limiter, config.synthesis)

    @classmethod
    def from_config(cls, config: RecallConfig) -> "RecallService":
        embedding = EmbeddingService(
            api_key=config.embedding.api_key or None,
            model=config.embedding.model,
            max_input_chars=config.embedding.max_input_chars,
        )
        llm = LLMClient(config.llm)
        limiter = RateLimiter.from_url(config.redis.url) if llm.is_available else None
        if not llm.is_available:
            logger.info("LLM client unavailable, synthesis disabled")
        return cls(config, embedding, create_vector_index(config), limiter, llm)

    # Write path

    async def index_message(
        self,
        message_id: str,
        content: str,
        metadata: Union[MessageMetadata, Dict[str, Any]],
    ) -> int:
        return await self.pipeline.index_message(message_id, content, metadata)

    async def index_messages(self, messages: List[Union[Message, Dict[str, Any]]]) -> List[BatchResult]:
        return await self.pipeline.index_batch(messages)

    async def clear_index(self) -> None:
        await self._index.clear_all()

    # Read path

    async def find_similar_messages(
        self,
        query_text: str,
        channel_id: Optional[str] = None,
        channel_ids: Optional[Sequence[str]] = None,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> List[RankedMessage]:
        return await self.searcher.find_similar_messages(
            query_text,
            channel_id=channel_id,
            channel_ids=channel_ids,
            top_k=top_k,
            min_score=min_score,
            now=now,
        )

    async def search(
        self,
        request: Union[SearchRequest, Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> SearchPage:
        """
        Paged search.

        Every page ranks the same bounded window (search.max_results) so that
        continuations resume after the cursor in a stable order.
        """
        request = validate_request(request)
        page_size = request.top_k or self._config.search.page_size

        window = max(self._config.search.max_results, page_size)

        results = await self.searcher.find_similar_messages(
            request.query,
            channel_id=request.channel_id,
            channel_ids=request.channel_ids,
            top_k=window,
            min_score=request.min_score,
            now=now,
        )
        return paginate(results, page_size, request.cursor)

    async def get_context_window(
        self,
        channel_id: str,
        prompt: str,
        max_tokens: Optional[int] = None,
        include_related_channels: bool = False,
        min_score: Optional[float] = None,
    ) -> ContextWindow:
        return await self.context.get_context_window(
            channel_id,
            prompt,
            max_tokens=max_tokens,
            include_related_channels=include_related_channels,
            min_score=min_score,
        )

    async def synthesize(self, channel_id: str, prompt: str) -> SynthesisResult:
        if self.synthesizer is None:
            raise RuntimeError("Synthesis is not configured (no LLM client or rate limiter)")
        return await self.synthesizer.synthesize(channel_id, prompt)

    async def close(self) -> None:
        await self._index.close()
        if self._limiter is not None:
            await self._limiter.close()
