"""
Synthesizer

Answers a prompt with an LLM, grounded on the channel's context window.

Flow:
1. Check the shared rate limit (exceeding it is terminal, nothing is queued)
2. Build the context window
3. Call the LLM, retrying failures with exponential backoff
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..common.config import SynthesisConfig
from ..common.errors import SynthesisError
from ..common.llm_client import LLMClient
from ..common.rate_limiter import RateLimiter
from .context_window import ContextWindow, ContextWindowAssembler

logger = logging.getLogger("recall.retriever.synthesizer")

SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the provided context to answer questions, "
    "but also use your general knowledge when appropriate."
)

EMPTY_RESPONSE = "No response generated"


@dataclass
class SynthesisResult:
    """Generated answer"""
    response: str
    context_message_count: int


def format_context(window: ContextWindow) -> str:
    """One "[timestamp] content" line per message, parent text on the line after"""
    lines = []
    for message in window.messages:
        lines.append(f"[{message.timestamp}] {message.content}")
        if message.parent_context is not None:
            lines.append(f"(reply to: {message.parent_context.content})")
    return "\n".join(lines)


def build_prompt(prompt: str, context_text: str) -> str:
    if not context_text:
        return prompt
    return f"Context:\n{context_text}\n\nQuestion: {prompt}"


class Synthesizer:
    """
    Rate-limited, retrying LLM answer generation.

    Only the generation call is retried; the context window is built once.
    """

    def __init__(
        self,
        context_assembler: ContextWindowAssembler,
        llm_client: LLMClient,
        rate_limiter: RateLimiter,
        config: Optional[SynthesisConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize synthesizer.

        Args:
            context_assembler: Builds the grounding context
            llm_client: Text generation client
            rate_limiter: Shared quota for LLM calls
            config: Attempts, backoff and quota settings
            sleep: Awaitable used between attempts
        """
        self._context = context_assembler
        self._llm = llm_client
        self._limiter = rate_limiter
        self._config = config or SynthesisConfig()
        self._sleep = sleep

    def retry_delay(self, failures: int) -> float:
        """Seconds to wait after the given number of failed attempts"""
        return (2 ** failures) * self._config.retry_base_delay

    async def synthesize(self, channel_id: str, prompt: str) -> SynthesisResult:
        """
        Generate a response to prompt using context from channel_id.

        Raises:
            RateLimitExceeded: quota exhausted (checked before any work)
            SynthesisError: every attempt failed
        """
        await self._limiter.check(
            self._config.rate_bucket,
            self._config.rate_limit,
            self._config.rate_window,
        )

        window = await self._context.get_context_window(channel_id, prompt)
        user_prompt = build_prompt(prompt, format_context(window))

        last_error = None
        for attempt in range(1, self._config.max_attempts + 1):
            try:
                text = await self._llm.generate(
                    user_prompt,
                    system=SYSTEM_PROMPT,
                    max_tokens=self._config.max_output_tokens,
                )
                return SynthesisResult(
                    response=text or EMPTY_RESPONSE,
                    context_message_count=len(window.messages),
                )
            except Exception as e:
                last_error = e
                logger.error("Synthesis attempt %d failed: %s", attempt, e)
                if attempt < self._config.max_attempts:
                    await self._sleep(self.retry_delay(attempt))

        raise SynthesisError(self._config.max_attempts, last_error) from last_error
