"""Sequential segment generation and response assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Protocol

from ..config import Settings
from ..lyria import EmptyPredictionError, LyriaError
from .errors import ErrorKind, GenerationFailure, build_failure, classify_provider_error
from .models import (
    AudioSegment,
    ConcatenatedAudio,
    GenerationMetadata,
    GenerationRequest,
    Message,
    SegmentPlan,
)
from .prompts import parse_structured_prompt, plan_segments
from .wav import concatenate_wav, encode_data_uri

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "wav"
# Internal faults are logged in full; clients only see this text.
INTERNAL_ERROR_DETAIL = "internal server error"

PROMPT_SUGGESTIONS: tuple[str, ...] = (
    "Try more specific musical terms (e.g., 'cinematic orchestral suite', 'heroic brass fanfare')",
    "Add tempo descriptors ('allegro', 'andante', 'presto')",
    "Specify instruments ('full symphony orchestra', 'piano and strings', 'brass ensemble')",
    "Include mood descriptors ('triumphant', 'mysterious', 'uplifting', 'dramatic')",
    "Use professional terminology ('crescendo', 'fortissimo', 'legato')",
)

CONTINUATION_PROMPTS: tuple[str, ...] = (
    "Add dramatic crescendo and powerful brass section",
    "Include soaring violin melodies and timpani rolls",
    "Build to an epic finale with full orchestra",
    "Add heroic themes with French horns and trumpets",
    "Create cinematic tension with rising dynamics",
)


class SegmentGenerator(Protocol):
    """The provider call used for each segment (``LyriaClient`` in production)."""

    @property
    def model_name(self) -> str: ...

    async def generate_segment(
        self,
        prompt: str,
        duration_seconds: float,
        *,
        negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> bytes: ...


class MissingGenerationMetadata(ValueError):
    """Raised when a variation is requested for a message without metadata."""


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """A completed multi-segment generation."""

    request: GenerationRequest
    plan: SegmentPlan
    segments: tuple[AudioSegment, ...]
    audio: ConcatenatedAudio
    metadata: GenerationMetadata
    suggestions: tuple[str, ...] = PROMPT_SUGGESTIONS
    continuation_prompts: tuple[str, ...] = CONTINUATION_PROMPTS

    @property
    def full_audio_url(self) -> str:
        return encode_data_uri(self.audio.payload, AUDIO_FORMAT)


@dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Either a ``GenerationResult`` or a classified ``GenerationFailure``."""

    result: Optional[GenerationResult] = None
    failure: Optional[GenerationFailure] = None
    metadata: Optional[GenerationMetadata] = None

    @property
    def success(self) -> bool:
        return self.result is not None

    @property
    def status_code(self) -> int:
        return self.failure.status_code if self.failure is not None else 200


class MusicGenerationService:
    """Plan, generate, and stitch the segments for one request."""

    def __init__(self, settings: Settings, generator: SegmentGenerator):
        self._settings = settings
        self._generator = generator

    def plan(self, request: GenerationRequest) -> SegmentPlan:
        parts = parse_structured_prompt(request.prompt)
        return plan_segments(
            request.prompt,
            request.duration,
            structured_parts=parts,
            max_segment_seconds=self._settings.max_segment_seconds,
            max_prompt_length=self._settings.max_prompt_length,
        )

    async def _generate_segments(
        self, request: GenerationRequest, plan: SegmentPlan
    ) -> list[AudioSegment]:
        segments: list[AudioSegment] = []
        for spec in plan:
            seed = request.seed + spec.index if request.seed is not None else None
            logger.info(
                "Generating segment %d/%d (%.1fs-%.1fs)",
                spec.index + 1,
                len(plan),
                spec.start_time,
                spec.end_time,
            )
            payload = await self._generator.generate_segment(
                spec.prompt_text,
                spec.duration_seconds,
                negative_prompt=request.negative_prompt,
                seed=seed,
                temperature=request.temperature,
            )
            segments.append(
                AudioSegment(
                    payload=payload,
                    start_time=spec.start_time,
                    end_time=spec.end_time,
                    prompt_text=spec.source_prompt,
                    seamless_transition=spec.index > 0,
                )
            )
        return segments

    def _failure_metadata(self, request: GenerationRequest) -> GenerationMetadata:
        return GenerationMetadata(
            duration=0,
            model=self._generator.model_name,
            prompt=request.prompt,
            negative_prompt=request.negative_prompt,
            seed=request.seed,
            cost=0.0,
        )

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        """Run the full pipeline for ``request``.

        Segments are generated strictly in order. The first failing segment
        aborts the rest of the plan and the whole request is reported as a
        classified failure; partial audio is discarded.
        """

        plan = self.plan(request)
        logger.info(
            "Generating %d segments of ~%ds each for total duration of %ds",
            len(plan),
            round(plan.segment_duration),
            request.duration,
        )
        if request.has_inspiration_audio:
            logger.info(
                "Inspiration audio received (%d bytes); not forwarded to the provider",
                len(request.inspiration_audio or b""),
            )

        try:
            segments = await self._generate_segments(request, plan)
            audio = concatenate_wav(segments)
        except EmptyPredictionError as exc:
            logger.warning("Lyria returned no audio: %s", exc)
            failure = build_failure(
                ErrorKind.GENERATION_FAILED, request.prompt, detail=str(exc)
            )
            return GenerationOutcome(
                failure=failure, metadata=self._failure_metadata(request)
            )
        except LyriaError as exc:
            logger.error("Lyria API error: %s", exc)
            failure = classify_provider_error(str(exc), request.prompt)
            return GenerationOutcome(
                failure=failure, metadata=self._failure_metadata(request)
            )
        except Exception:
            logger.exception("Unexpected error while generating music")
            failure = build_failure(
                ErrorKind.UNEXPECTED_ERROR,
                request.prompt,
                detail=INTERNAL_ERROR_DETAIL,
            )
            return GenerationOutcome(
                failure=failure, metadata=self._failure_metadata(request)
            )

        metadata = GenerationMetadata(
            duration=request.duration,
            model=self._generator.model_name,
            prompt=request.prompt,
            negative_prompt=request.negative_prompt,
            seed=request.seed,
            version=1,
            cost=self._settings.generation_cost(request.duration),
        )
        result = GenerationResult(
            request=request,
            plan=plan,
            segments=tuple(segments),
            audio=audio,
            metadata=metadata,
        )
        logger.info(
            "Generated %ds of music in %d segments (%d bytes)",
            request.duration,
            len(segments),
            audio.total_size,
        )
        return GenerationOutcome(result=result, metadata=metadata)

    def variation_request(
        self, parent: Message, instructions: str
    ) -> GenerationRequest:
        """Build the request that re-generates ``parent`` with ``instructions``."""

        metadata = parent.metadata
        if metadata is None:
            raise MissingGenerationMetadata("Original message has no metadata")

        return GenerationRequest(
            prompt=f"{metadata.prompt}. {instructions}",
            duration=max(1, round(metadata.duration)),
            negative_prompt=metadata.negative_prompt,
            seed=metadata.seed + 1 if metadata.seed is not None else None,
        )

    async def generate_variation(
        self, parent: Message, instructions: str
    ) -> GenerationOutcome:
        """Generate a variation of ``parent`` and re-version its metadata.

        Variations are billed at the variation rate on the parent's duration
        and carry ``version = parent.version + 1`` plus a back-reference to
        the parent message.
        """

        request = self.variation_request(parent, instructions)
        assert parent.metadata is not None
        cost = self._settings.generation_cost(parent.metadata.duration, variation=True)

        outcome = await self.generate(request)
        if outcome.metadata is None:  # pragma: no cover - generate always sets it
            return outcome

        if outcome.result is None:
            metadata = outcome.metadata.as_variation_of(parent, 0.0)
            return replace(outcome, metadata=metadata)

        metadata = outcome.metadata.as_variation_of(parent, cost)
        result = replace(outcome.result, metadata=metadata)
        return GenerationOutcome(result=result, metadata=metadata)


__all__ = [
    "CONTINUATION_PROMPTS",
    "GenerationOutcome",
    "GenerationResult",
    "MissingGenerationMetadata",
    "MusicGenerationService",
    "PROMPT_SUGGESTIONS",
    "SegmentGenerator",
]
