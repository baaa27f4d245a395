"""Pydantic models for the chat session API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from ..music.models import ChatSession, Message
from .generation import CamelModel, MetadataPayload


class SessionCreatePayload(CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)


class VariationPayload(CamelModel):
    instructions: str = Field(..., min_length=1, description="How the variation should differ")


class MessageResource(CamelModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    music_url: Optional[str] = None
    metadata: Optional[MetadataPayload] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResource":
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
            music_url=message.music_url,
            metadata=(
                MetadataPayload.from_metadata(message.metadata)
                if message.metadata is not None
                else None
            ),
        )


class SessionResource(CamelModel):
    id: str
    title: str
    messages: List[MessageResource]
    total_cost: float
    created_at: datetime

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionResource":
        return cls(
            id=session.id,
            title=session.title,
            messages=[MessageResource.from_message(m) for m in session.messages],
            total_cost=session.total_cost,
            created_at=session.created_at,
        )


class SessionSummary(CamelModel):
    """Session listing entry without message bodies."""

    id: str
    title: str
    message_count: int
    total_cost: float
    created_at: datetime

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            message_count=len(session.messages),
            total_cost=session.total_cost,
            created_at=session.created_at,
        )


__all__ = [
    "MessageResource",
    "SessionCreatePayload",
    "SessionResource",
    "SessionSummary",
    "VariationPayload",
]
