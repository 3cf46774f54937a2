"""
Chunker

Splits message text into bounded, sentence-respecting chunks and puts them
back together. Pure functions, no I/O.

Rules:
- Whitespace is normalized to single spaces first
- Sentences end at runs of . ! ? followed by whitespace or end of text
- Sentences accumulate until the next one would push the chunk past
  TARGET_CHUNK_SIZE, provided the chunk already holds MIN_CHUNK_SIZE chars
- A sentence longer than TARGET_CHUNK_SIZE is hard-split on word boundaries
- Chunks do not overlap, so joining them with single spaces restores the
  normalized text exactly
"""

import re
from typing import Iterable, List

from ..common.schemas import Chunk, MessageMetadata

TARGET_CHUNK_SIZE = 512
MIN_CHUNK_SIZE = 100

_WHITESPACE = re.compile(r"\s+")
_SENTENCE = re.compile(r"\S.*?(?:[.!?]+(?=\s|$)|$)")


def normalize_text(text: str) -> str:
    """Collapse all whitespace runs to a single space and trim"""
    return _WHITESPACE.sub(" ", text or "").strip()


def split_sentences(text: str) -> List[str]:
    """Split normalized text into sentences (terminal punctuation kept)"""
    return [s.strip() for s in _SENTENCE.findall(text) if s.strip()]


class Chunker:
    """
    Sentence-aware text chunker.

    Usage:
        chunker = Chunker()
        chunks = chunker.chunk(message.content, message.to_metadata())
        text = chunker.reconstruct(chunks)
    """

    def __init__(self, target_size: int = TARGET_CHUNK_SIZE, min_size: int = MIN_CHUNK_SIZE):
        if min_size > target_size:
            raise ValueError("min_size cannot exceed target_size")
        self.target_size = target_size
        self.min_size = min_size

    def split(self, text: str) -> List[str]:
        """
        Split text into chunk contents.

        Returns:
            List of chunk strings (empty for blank input)
        """
        normalized = normalize_text(text)
        if not normalized:
            return []

        pieces: List[str] = []
        current = ""

        for sentence in split_sentences(normalized):
            if len(sentence) > self.target_size:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.extend(self._split_long_sentence(sentence))
                continue

            if current and len(current) + 1 + len(sentence) > self.target_size and len(current) >= self.min_size:
                pieces.append(current)
                current = ""

            current = f"{current} {sentence}" if current else sentence

        if current:
            pieces.append(current)

        return pieces

    def _split_long_sentence(self, sentence: str) -> List[str]:
        """Hard-split an oversized sentence on word boundaries"""
        pieces: List[str] = []
        current = ""

        for word in sentence.split(" "):
            if current and len(current) + 1 + len(word) > self.target_size and len(current) >= self.min_size:
                pieces.append(current)
                current = ""
            current = f"{current} {word}" if current else word

        if current:
            pieces.append(current)

        return pieces

    def chunk(self, text: str, metadata: MessageMetadata) -> List[Chunk]:
        """
        Chunk a message's text and stamp each chunk with positional metadata.

        Args:
            text: Message content
            metadata: Per-message fields copied onto every chunk

        Returns:
            Chunks with chunk_index 0..n-1 and total_chunks == n
        """
        pieces = self.split(text)
        total = len(pieces)

        return [
            Chunk(
                content=piece,
                message_id=metadata.message_id,
                chunk_index=index,
                total_chunks=total,
                channel_id=metadata.channel_id,
                user_id=metadata.user_id,
                timestamp=metadata.timestamp,
                reply_to_id=metadata.reply_to_id,
            )
            for index, piece in enumerate(pieces)
        ]

    @staticmethod
    def reconstruct(chunks: Iterable[Chunk]) -> str:
        """
        Rebuild text from chunks in chunk_index order.

        The sort is stable, so out-of-order input is fine. Chunks sharing an
        index are all kept; deduplication is the caller's job.
        """
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        return " ".join(c.content for c in ordered)
