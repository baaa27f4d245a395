"""Segmented music generation package."""

from .errors import ErrorKind, GenerationFailure, classify_provider_error
from .models import (
    AudioSegment,
    ChatSession,
    ConcatenatedAudio,
    GenerationMetadata,
    GenerationRequest,
    Message,
    NewMessage,
    SegmentPlan,
)
from .orchestrator import GenerationOutcome, GenerationResult, MusicGenerationService

__all__ = [
    "AudioSegment",
    "ChatSession",
    "ConcatenatedAudio",
    "ErrorKind",
    "GenerationFailure",
    "GenerationMetadata",
    "GenerationOutcome",
    "GenerationRequest",
    "GenerationResult",
    "Message",
    "MusicGenerationService",
    "NewMessage",
    "SegmentPlan",
    "classify_provider_error",
]
