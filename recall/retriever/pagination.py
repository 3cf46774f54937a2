"""
Search request, result pages and opaque cursors.

A cursor is URL-safe base64 of {"id", "score", "timestamp"} for the last item
of a page. Continuing a search re-ranks the same bounded result window and
resumes after that item (or after its score/time position if it has since
dropped out of the window).
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..common.errors import ValidationError
from ..common.schemas import parse_timestamp
from .searcher import RankedMessage


class SearchRequest(BaseModel):
    """Caller-facing search parameters"""
    query: str = Field(..., min_length=1)
    channel_id: Optional[str] = Field(default=None, description="Single channel scope (enables channel boost)")
    channel_ids: Optional[List[str]] = Field(default=None, description="Multi-channel scope")
    top_k: Optional[int] = Field(default=None, ge=1, description="Page size")
    min_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    cursor: Optional[str] = None

    @model_validator(mode="after")
    def _check_query(self) -> "SearchRequest":
        if not self.query.strip():
            raise ValueError("query must not be blank")
        return self


@dataclass
class Cursor:
    id: str
    score: float
    timestamp: str = ""


@dataclass
class SearchPage:
    """One page of ranked results"""
    items: List[RankedMessage] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def has_next_page(self) -> bool:
        return self.next_cursor is not None


def validate_request(request) -> SearchRequest:
    if isinstance(request, SearchRequest):
        return request
    try:
        return SearchRequest.model_validate(request)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid search request: {e}") from e


def encode_cursor(message: RankedMessage) -> str:
    payload = {"id": message.message_id, "score": message.final_score, "timestamp": message.timestamp}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    """
    Raises:
        ValidationError: cursor is not one this module produced
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return Cursor(id=str(data["id"]), score=float(data["score"]), timestamp=str(data.get("timestamp", "")))
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise ValidationError(f"Invalid cursor: {cursor!r}") from e


def _resume_index(results: List[RankedMessage], cursor: Cursor) -> int:
    for i, message in enumerate(results):
        if message.message_id == cursor.id:
            return i + 1

    # Cursor item is gone: skip everything ranked at or above its position
    cursor_time = parse_timestamp(cursor.timestamp)
    for i, message in enumerate(results):
        if message.final_score < cursor.score:
            return i
        if message.final_score == cursor.score and cursor_time is not None:
            created = message.created_at
            if created is not None and created < cursor_time:
                return i
    return len(results)


def paginate(results: List[RankedMessage], page_size: int, cursor: Optional[str] = None) -> SearchPage:
    """Cut one page out of a ranked result list"""
    if page_size <= 0:
        raise ValidationError("page_size must be positive")

    start = _resume_index(results, decode_cursor(cursor)) if cursor else 0
    items = results[start:start + page_size]

    next_cursor = None
    if items and start + page_size < len(results):
        next_cursor = encode_cursor(items[-1])

    return SearchPage(items=items, next_cursor=next_cursor)
