"""
Message and Chunk Schemas

Closed, typed metadata for everything that flows into the vector index.
Field aliases are the camelCase keys stored as vector metadata, so records
written by the chat backend and by Recall are interchangeable.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


def chunk_record_id(message_id: str, chunk_index: int) -> str:
    """Deterministic vector record id (the idempotency key for upserts)"""
    return f"{message_id}_chunk_{chunk_index}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value:
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way timestamps are stored in the index"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Message(BaseModel):
    """A chat message as projected from the relational store"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1, alias="channelId")
    user_id: str = Field(..., min_length=1, alias="userId")
    content: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    reply_to_id: Optional[str] = Field(default=None, alias="replyToId")

    def to_metadata(self) -> "MessageMetadata":
        return MessageMetadata(
            message_id=self.id,
            channel_id=self.channel_id,
            user_id=self.user_id,
            timestamp=format_timestamp(self.created_at),
            reply_to_id=self.reply_to_id,
        )


class MessageMetadata(BaseModel):
    """Per-message fields copied onto every chunk of that message"""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    message_id: str = Field(..., min_length=1, alias="messageId")
    channel_id: str = Field(..., min_length=1, alias="channelId")
    user_id: str = Field(..., min_length=1, alias="userId")
    timestamp: str = Field(..., min_length=1)
    reply_to_id: Optional[str] = Field(default=None, alias="replyToId")


class Chunk(BaseModel):
    """A bounded slice of a message's text, the unit that gets embedded"""
    model_config = ConfigDict(populate_by_name=True)

    content: str
    message_id: str = Field(..., alias="messageId")
    chunk_index: int = Field(..., ge=0, alias="chunkIndex")
    total_chunks: int = Field(..., ge=0, alias="totalChunks")
    channel_id: str = Field(..., alias="channelId")
    user_id: str = Field(..., alias="userId")
    timestamp: str
    reply_to_id: Optional[str] = Field(default=None, alias="replyToId")

    @property
    def record_id(self) -> str:
        return chunk_record_id(self.message_id, self.chunk_index)

    def to_metadata(self) -> Dict[str, Any]:
        """Vector metadata (camelCase keys, no nulls)"""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any], fallback_id: str = "") -> "Chunk":
        """
        Rebuild a chunk from stored vector metadata.

        Tolerates legacy records: ``replyTo`` is read as ``replyToId`` and a
        missing ``messageId`` falls back to the vector record id.
        """
        data = dict(metadata or {})
        if "replyToId" not in data and data.get("replyTo"):
            data["replyToId"] = data["replyTo"]
        return cls(
            content=str(data.get("content", "")),
            message_id=str(data.get("messageId") or fallback_id),
            chunk_index=int(data.get("chunkIndex", 0)),
            total_chunks=int(data.get("totalChunks", 1)),
            channel_id=str(data.get("channelId", "")),
            user_id=str(data.get("userId", "")),
            timestamp=str(data.get("timestamp", "")),
            reply_to_id=data.get("replyToId") or None,
        )


def validate_metadata(metadata: Any, message_id: Optional[str] = None) -> MessageMetadata:
    """
    Validate caller-supplied metadata at the indexing boundary.

    When message_id is given it replaces any id inside metadata, and the
    merged fields are validated together.
    """
    if isinstance(metadata, MessageMetadata):
        if message_id is None:
            return metadata
        data = metadata.model_dump()
    elif isinstance(metadata, dict):
        data = dict(metadata)
    else:
        data = metadata
    if message_id is not None and isinstance(data, dict):
        data.pop("messageId", None)
        data["message_id"] = message_id
    try:
        return MessageMetadata.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid message metadata: {e}") from e


def validate_message(message: Any) -> Message:
    """Validate a message (model or dict) at the indexing boundary"""
    if isinstance(message, Message):
        return message
    try:
        return Message.model_validate(message)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid message: {e}") from e
