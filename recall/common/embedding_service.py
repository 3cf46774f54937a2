"""
Embedding Service

Turns text into fixed-dimension vectors through the OpenAI embeddings API.
Inputs are truncated to the provider limit before the call. Provider errors
propagate unchanged; retry policy belongs to callers.
"""

import logging
from typing import List, Optional

from .errors import ValidationError

logger = logging.getLogger("recall.common.embedding_service")

DEFAULT_MODEL = "text-embedding-ada-002"
DEFAULT_MAX_INPUT_CHARS = 8000


class EmbeddingService:
    """
    Async embedding gateway.

    Batches go to the provider in a single request; the provider returns one
    vector per input, in input order.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        client=None,
    ):
        """
        Initialize embedding service.

        Args:
            api_key: OpenAI API key (ignored when client is given)
            model: Embedding model name
            max_input_chars: Inputs longer than this are cut before the call
            client: Pre-built AsyncOpenAI-compatible client
        """
        self._model = model
        self._max_input_chars = max_input_chars

        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key)
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    def _prepare(self, text: str) -> str:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text input cannot be empty")
        if len(text) > self._max_input_chars:
            logger.debug("Truncating embedding input from %d to %d chars", len(text), self._max_input_chars)
            return text[:self._max_input_chars]
        return text

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors, one per input
        """
        if not texts:
            return []

        # Validate everything before touching the network
        inputs = [self._prepare(t) for t in texts]

        response = await self._client.embeddings.create(model=self._model, input=inputs)

        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]

    async def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector
        """
        embeddings = await self.embed([text])
        return embeddings[0]

