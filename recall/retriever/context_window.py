"""
Context Window Assembler

Turns ranked search results into a token-bounded set of messages for
prompting. Token counts are estimated as ceil(chars / 4), not tokenized.

This is the fail-soft boundary of the read path: retrieval errors are
logged and an empty window is returned.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..common.config import ContextConfig
from .searcher import RankedMessage, Searcher

logger = logging.getLogger("recall.retriever.context_window")


@dataclass
class ContextWindow:
    """Messages selected for a prompt, best first"""
    messages: List[RankedMessage] = field(default_factory=list)
    total_tokens: int = 0
    touched_channels: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.messages


def estimate_tokens(text: Optional[str], chars_per_token: int = 4) -> int:
    """Rough token count for budget purposes"""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


class ContextWindowAssembler:
    """Greedy, budgeted selection over ranked search results"""

    def __init__(self, searcher: Searcher, config: Optional[ContextConfig] = None):
        self._searcher = searcher
        self._config = config or ContextConfig()

    def message_tokens(self, message: RankedMessage) -> int:
        """Tokens a result costs: its own text plus its parent's, if attached"""
        cost = estimate_tokens(message.content, self._config.chars_per_token)
        if message.parent_context is not None:
            cost += estimate_tokens(message.parent_context.content, self._config.chars_per_token)
        return cost

    async def get_context_window(
        self,
        channel_id: str,
        prompt: str,
        max_tokens: Optional[int] = None,
        include_related_channels: bool = False,
        min_score: Optional[float] = None,
    ) -> ContextWindow:
        """
        Build a context window for a prompt.

        Args:
            channel_id: Channel the prompt was asked in
            prompt: Text to retrieve context for
            max_tokens: Token budget (context.max_tokens if omitted)
            include_related_channels: Search every channel instead of just channel_id
            min_score: Similarity threshold (context.min_score if omitted)

        Returns:
            ContextWindow (empty on any retrieval error)
        """
        max_tokens = self._config.max_tokens if max_tokens is None else max_tokens
        min_score = self._config.min_score if min_score is None else min_score

        try:
            results = await self._searcher.find_similar_messages(
                prompt,
                channel_id=None if include_related_channels else channel_id,
                min_score=min_score,
            )
        except Exception as e:
            logger.warning("Context retrieval failed for channel %s: %s", channel_id, e)
            return ContextWindow()

        return self.assemble(results, max_tokens)

    def assemble(self, results: List[RankedMessage], max_tokens: int) -> ContextWindow:
        """Walk results in rank order until the next one would overflow the budget"""
        window = ContextWindow()

        for message in results:
            cost = self.message_tokens(message)
            if window.total_tokens + cost > max_tokens:
                break
            window.messages.append(message)
            window.total_tokens += cost
            if message.channel_id:
                window.touched_channels.add(message.channel_id)
            if window.total_tokens == max_tokens:
                break

        logger.debug(
            "Context window: %d/%d messages, %d/%d tokens",
            len(window.messages), len(results), window.total_tokens, max_tokens,
        )
        return window
