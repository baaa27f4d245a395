"""Pydantic models for music generation responses."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..music.errors import ErrorKind, GenerationFailure
from ..music.models import AudioSegment, GenerationMetadata
from ..music.orchestrator import AUDIO_FORMAT, GenerationOutcome, GenerationResult
from ..music.wav import encode_data_uri


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AudioSegmentPayload(CamelModel):
    url: str
    start_time: float
    end_time: float
    prompt: str
    seamless_transition: bool

    @classmethod
    def from_segment(cls, segment: AudioSegment) -> "AudioSegmentPayload":
        return cls(
            url=encode_data_uri(segment.payload, AUDIO_FORMAT),
            start_time=segment.start_time,
            end_time=segment.end_time,
            prompt=segment.prompt_text,
            seamless_transition=segment.seamless_transition,
        )


class MetadataPayload(CamelModel):
    """Generation metadata as stored on chat messages."""

    duration: float
    model: str
    prompt: str
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    version: int
    parent_id: Optional[str] = None
    cost: float

    @classmethod
    def from_metadata(cls, metadata: GenerationMetadata) -> "MetadataPayload":
        return cls(
            duration=metadata.duration,
            model=metadata.model,
            prompt=metadata.prompt,
            negative_prompt=metadata.negative_prompt,
            seed=metadata.seed,
            version=metadata.version,
            parent_id=metadata.parent_id,
            cost=metadata.cost,
        )


class GenerationMetadataPayload(MetadataPayload):
    """Metadata returned with a finished generation."""

    segments: int
    segment_duration: float
    concatenated: bool
    total_size: int


class GenerationSuccessResponse(CamelModel):
    success: Literal[True] = True
    full_audio_url: str
    audio_segments: List[AudioSegmentPayload]
    metadata: GenerationMetadataPayload
    suggestions: List[str] = Field(default_factory=list)
    continuation_prompts: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationSuccessResponse":
        base = MetadataPayload.from_metadata(result.metadata)
        return cls(
            full_audio_url=result.full_audio_url,
            audio_segments=[
                AudioSegmentPayload.from_segment(segment) for segment in result.segments
            ],
            metadata=GenerationMetadataPayload(
                **base.model_dump(),
                segments=len(result.plan),
                segment_duration=result.plan.segment_duration,
                concatenated=result.audio.segment_count > 1,
                total_size=result.audio.total_size,
            ),
            suggestions=list(result.suggestions),
            continuation_prompts=list(result.continuation_prompts),
        )


class GenerationErrorResponse(CamelModel):
    success: Literal[False] = False
    error_type: ErrorKind
    error: str
    message: str
    suggestions: Optional[List[str]] = None
    user_prompt: str

    @classmethod
    def from_failure(cls, failure: GenerationFailure) -> "GenerationErrorResponse":
        return cls(
            error_type=failure.kind,
            error=failure.error,
            message=failure.message,
            suggestions=list(failure.suggestions) or None,
            user_prompt=failure.user_prompt,
        )


def outcome_payload(outcome: GenerationOutcome) -> dict:
    """Serialize a generation outcome into its camelCase JSON body."""

    if outcome.result is not None:
        response = GenerationSuccessResponse.from_result(outcome.result)
        return response.model_dump(mode="json", by_alias=True)
    assert outcome.failure is not None
    error = GenerationErrorResponse.from_failure(outcome.failure)
    return error.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "AudioSegmentPayload",
    "CamelModel",
    "GenerationErrorResponse",
    "GenerationMetadataPayload",
    "GenerationSuccessResponse",
    "MetadataPayload",
    "outcome_payload",
]
