"""Domain models for segmented music generation and chat sessions."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Literal, Optional

MessageRole = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """A single user request for a track; ``duration`` is already clamped."""

    prompt: str
    duration: int
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    inspiration_audio: Optional[bytes] = None

    @property
    def has_inspiration_audio(self) -> bool:
        return bool(self.inspiration_audio)


@dataclass(frozen=True, slots=True)
class SegmentSpec:
    """One planned provider call."""

    index: int
    start_time: float
    end_time: float
    duration_seconds: float
    prompt_text: str
    source_prompt: str
    is_continuation: bool


@dataclass(frozen=True, slots=True)
class SegmentPlan:
    """Ordered, contiguous segments covering the requested duration."""

    total_duration: float
    segment_duration: float
    segments: tuple[SegmentSpec, ...]
    structured: bool = False

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)


@dataclass(frozen=True, slots=True)
class AudioSegment:
    """Audio returned by one provider call, in WAV container format."""

    payload: bytes
    start_time: float
    end_time: float
    prompt_text: str
    seamless_transition: bool


@dataclass(frozen=True, slots=True)
class ConcatenatedAudio:
    payload: bytes
    segment_count: int

    @property
    def total_size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class GenerationMetadata:
    """Lineage and billing information attached to a generated track."""

    duration: float
    model: str
    prompt: str
    cost: float
    version: int = 1
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    parent_id: Optional[str] = None

    def as_variation_of(self, parent: "Message", cost: float) -> "GenerationMetadata":
        """Return a copy describing a variation derived from ``parent``."""

        parent_version = parent.metadata.version if parent.metadata else 1
        return replace(
            self,
            cost=cost,
            version=parent_version + 1,
            parent_id=parent.id,
        )


@dataclass(frozen=True, slots=True)
class NewMessage:
    """Message content supplied by callers; the store assigns id and timestamp."""

    role: MessageRole
    content: str
    music_url: Optional[str] = None
    metadata: Optional[GenerationMetadata] = None


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    role: MessageRole
    content: str
    timestamp: datetime.datetime
    music_url: Optional[str] = None
    metadata: Optional[GenerationMetadata] = None


@dataclass(frozen=True, slots=True)
class ChatSession:
    """Immutable snapshot of a chat session."""

    id: str
    title: str
    created_at: datetime.datetime
    messages: tuple[Message, ...] = field(default_factory=tuple)
    total_cost: float = 0.0

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


__all__ = [
    "AudioSegment",
    "ChatSession",
    "ConcatenatedAudio",
    "GenerationMetadata",
    "GenerationRequest",
    "Message",
    "MessageRole",
    "NewMessage",
    "SegmentPlan",
    "SegmentSpec",
]
