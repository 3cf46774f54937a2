"""
Searcher

Retrieval and ranking of chat messages.

Pipeline:
1. Embed the query
2. Query the index for top_k * oversample candidates (channel-scoped if asked)
3. Log thread participants among the candidates (informational only;
   thread scores come from the survivors in step 7)
4. Group chunks by message, keeping the best chunk per chunk_index
5. Drop messages whose best chunk scores below min_score
6. Rebuild message text and score recency and channel affinity
7. Rescore by thread: multi-message threads get a stronger recency weight
   and the thread multiplier
8. Sort by final score, near-ties broken by recency
9. Keep top_k
10. Attach parent message text to replies (best effort)

Embedding and index failures propagate; only parent lookups are forgiving.
"""

import asyncio
import functools
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set

from ..common.config import RankingConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import ValidationError
from ..common.schemas import Chunk, chunk_record_id, parse_timestamp
from ..common.vector_client import CandidateMatch, VectorIndex, build_channel_filter
from ..indexer.chunker import Chunker

logger = logging.getLogger("recall.retriever.searcher")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ParentContext:
    """The message a result replies to"""
    message_id: str
    content: str
    user_id: str = ""
    channel_id: str = ""
    timestamp: str = ""


@dataclass
class RankedMessage:
    """A message reassembled from its chunks and scored for one query"""
    message_id: str
    content: str
    raw_score: float
    channel_id: str = ""
    user_id: str = ""
    timestamp: str = ""
    reply_to_id: Optional[str] = None
    time_score: float = 0.0
    channel_score: float = 1.0
    thread_score: float = 1.0
    final_score: float = 0.0
    parent_context: Optional[ParentContext] = None

    @property
    def thread_key(self) -> str:
        """Replies group under their parent; everything else under itself"""
        return self.reply_to_id or self.message_id

    @property
    def created_at(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)

    @property
    def summary(self) -> str:
        """Short summary for logs"""
        return (
            f"{self.message_id} final={self.final_score:.4f} raw={self.raw_score:.3f} "
            f"time={self.time_score:.3f} channel={self.channel_score} thread={self.thread_score}"
        )


@dataclass
class _MessageGroup:
    """Candidate chunks belonging to one message"""
    message_id: str
    chunks: Dict[int, Chunk] = field(default_factory=dict)
    scores: Dict[int, float] = field(default_factory=dict)

    @property
    def raw_score(self) -> float:
        return max(self.scores.values()) if self.scores else 0.0

    def add(self, chunk: Chunk, score: float) -> None:
        # Same chunk reported twice: keep the better-scoring copy
        if chunk.chunk_index in self.scores and self.scores[chunk.chunk_index] >= score:
            return
        self.chunks[chunk.chunk_index] = chunk
        self.scores[chunk.chunk_index] = score


class Searcher:
    """
    Finds messages relevant to a query and ranks them with four signals:
    raw similarity, recency decay, channel affinity and thread affinity.

    The score is a pure function of those signals and the query time, so
    the same inputs always produce the same order.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        chunker: Optional[Chunker] = None,
        ranking: Optional[RankingConfig] = None,
    ):
        """
        Initialize searcher.

        Args:
            embedding_service: For embedding queries
            vector_index: Index holding chunk records
            chunker: Used to rebuild multi-chunk messages
            ranking: Scoring weights (defaults if omitted)
        """
        self._embedding = embedding_service
        self._index = vector_index
        self._chunker = chunker or Chunker()
        self._ranking = ranking or RankingConfig()

    @property
    def ranking(self) -> RankingConfig:
        return self._ranking

    async def find_similar_messages(
        self,
        query_text: str,
        channel_id: Optional[str] = None,
        channel_ids: Optional[Sequence[str]] = None,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> List[RankedMessage]:
        """
        Search for messages similar to query_text.

        Args:
            query_text: Free-form query
            channel_id: Scope to one channel (enables the channel boost)
            channel_ids: Scope to several channels (no channel boost)
            top_k: Number of messages to return
            min_score: Minimum raw similarity of a message's best chunk
            now: Reference time for recency (defaults to current UTC time)

        Returns:
            RankedMessage list, best first (empty if nothing clears min_score)
        """
        top_k = self._ranking.default_top_k if top_k is None else top_k
        min_score = self._ranking.default_min_score if min_score is None else min_score
        if top_k <= 0:
            raise ValidationError("top_k must be positive")
        now = now or datetime.now(timezone.utc)

        query_vector = await self._embedding.embed_single(query_text)
        candidates = await self._index.query(
            query_vector,
            top_k * self._ranking.oversample_factor,
            build_channel_filter(channel_id, channel_ids),
        )

        thread_members = self._collect_thread_members(candidates)
        if thread_members:
            logger.debug("Thread participants among candidates: %s", sorted(thread_members))
        groups = self._group_candidates(candidates)
        survivors = [g for g in groups if g.raw_score >= min_score]

        boosted_channel = channel_id if not channel_ids else None
        scored = [self._score_group(g, boosted_channel, now) for g in survivors]
        self._apply_thread_scores(scored)

        scored.sort(key=functools.cmp_to_key(self._compare))
        results = scored[:top_k]

        for r in results:
            logger.debug("Ranked %s", r.summary)

        await self._attach_parent_context(results)
        return results

    def _collect_thread_members(self, candidates: List[CandidateMatch]) -> Set[str]:
        """Every reply and every message replied to, among the candidates"""
        members: Set[str] = set()
        for match in candidates:
            chunk = Chunk.from_metadata(match.metadata, match.id)
            if chunk.reply_to_id:
                members.add(chunk.message_id)
                members.add(chunk.reply_to_id)
        return members

    def _group_candidates(self, candidates: List[CandidateMatch]) -> List[_MessageGroup]:
        """Group chunk matches by message id, in first-seen order"""
        groups: Dict[str, _MessageGroup] = {}
        for match in candidates:
            chunk = Chunk.from_metadata(match.metadata, match.id)
            group = groups.get(chunk.message_id)
            if group is None:
                group = groups[chunk.message_id] = _MessageGroup(message_id=chunk.message_id)
            group.add(chunk, match.score)
        return list(groups.values())

    def _score_group(
        self,
        group: _MessageGroup,
        boosted_channel: Optional[str],
        now: datetime,
    ) -> RankedMessage:
        chunks = list(group.chunks.values())
        head = group.chunks[min(group.chunks)]

        if len(chunks) > 1:
            content = self._chunker.reconstruct(chunks)
        else:
            content = head.content

        channel_score = 1.0
        if boosted_channel and head.channel_id == boosted_channel:
            channel_score = self._ranking.channel_boost

        return RankedMessage(
            message_id=group.message_id,
            content=content,
            raw_score=group.raw_score,
            channel_id=head.channel_id,
            user_id=head.user_id,
            timestamp=head.timestamp,
            reply_to_id=head.reply_to_id,
            time_score=self.time_score(head.timestamp, now),
            channel_score=channel_score,
        )

    def time_score(self, timestamp: str, now: datetime) -> float:
        """
        Exponential recency decay: exp(-decay_constant * age_in_hours).

        Future timestamps count as age zero; unparseable ones score 0.
        """
        created = parse_timestamp(timestamp)
        if created is None:
            return 0.0
        hours = max(0.0, (now - created).total_seconds() / 3600.0)
        return math.exp(-self._ranking.decay_constant * hours)

    def _apply_thread_scores(self, scored: List[RankedMessage]) -> None:
        threads: Dict[str, List[RankedMessage]] = {}
        for message in scored:
            threads.setdefault(message.thread_key, []).append(message)

        for members in threads.values():
            in_thread = len(members) > 1
            exponent = self._ranking.thread_time_exponent if in_thread else self._ranking.isolated_time_exponent
            multiplier = self._ranking.thread_boost if in_thread else 1.0
            for message in members:
                time_boost = message.time_score ** exponent
                message.thread_score = multiplier
                message.final_score = message.raw_score * time_boost * message.channel_score * multiplier

    def _compare(self, a: RankedMessage, b: RankedMessage) -> int:
        """Higher final score first; near-ties go to the more recent message"""
        if abs(a.final_score - b.final_score) < self._ranking.tie_epsilon:
            ta = a.created_at or _EPOCH
            tb = b.created_at or _EPOCH
            if ta == tb:
                return 0
            return -1 if ta > tb else 1
        return -1 if a.final_score > b.final_score else 1

    async def _attach_parent_context(self, results: List[RankedMessage]) -> None:
        replies = [r for r in results if r.reply_to_id]
        if not replies:
            return
        parents = await asyncio.gather(*(self.fetch_parent(r.reply_to_id) for r in replies))
        for reply, parent in zip(replies, parents):
            if parent is not None:
                reply.parent_context = parent

    async def fetch_parent(self, parent_id: str) -> Optional[ParentContext]:
        """
        Load a parent message from the index.

        Reads "{parent_id}_chunk_0" (or a legacy record stored under the bare
        message id) and, for multi-chunk parents, the remaining chunks.
        Returns None on any failure.
        """
        try:
            head_id = chunk_record_id(parent_id, 0)
            found = await self._index.fetch_many([head_id, parent_id])
            record = found.get(head_id) or found.get(parent_id)
            if record is None:
                return None

            head = Chunk.from_metadata(record.metadata, parent_id)
            chunks = [head]
            if head.total_chunks > 1:
                rest_ids = [chunk_record_id(parent_id, i) for i in range(1, head.total_chunks)]
                rest = await self._index.fetch_many(rest_ids)
                chunks.extend(Chunk.from_metadata(r.metadata, parent_id) for r in rest.values())

            return ParentContext(
                message_id=parent_id,
                content=self._chunker.reconstruct(chunks),
                user_id=head.user_id,
                channel_id=head.channel_id,
                timestamp=head.timestamp,
            )
        except Exception as e:
            logger.warning("Could not fetch parent context %s: %s", parent_id, e)
            return None
