"""Prompt segmentation and segment planning for long-form generation."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional, Sequence

from .models import SegmentPlan, SegmentSpec

logger = logging.getLogger(__name__)

MAX_SEGMENT_SECONDS = 30
MAX_PROMPT_LENGTH = 2000
ELLIPSIS = "..."

_STRUCTURED_MARKER = re.compile(r"Part \d+.*?Prompt:", re.IGNORECASE)
# Text after "Prompt:" runs until the next "Part N" marker or end of input.
_STRUCTURED_PART = re.compile(
    r"Part \d+.*?Prompt:\s*([\s\S]*?)(?=Part \d+|\Z)",
    re.IGNORECASE,
)

OPENING_TEMPLATE = (
    "High-quality professional recording: {prompt}. "
    "Rich instrumentation, clear sound, studio quality."
)
CONTINUATION_TEMPLATE = (
    "Continue the musical piece: {prompt}. "
    "Maintain the same style, tempo, and key signature for seamless continuation."
)
EMPTY_PART_PROMPT = "Continue the musical piece in the same style."


def is_structured_prompt(prompt: str) -> bool:
    return bool(_STRUCTURED_MARKER.search(prompt or ""))


def parse_structured_prompt(prompt: str) -> list[str]:
    """Split a "Part N ... Prompt: <text>" prompt into per-part prompt strings.

    Parts are returned in the order their markers appear in the text, not in
    numeric order. An empty list means the prompt is not structured and the
    caller should fall back to automatic segmentation.
    """

    if not is_structured_prompt(prompt):
        return []
    return [match.group(1).strip() for match in _STRUCTURED_PART.finditer(prompt)]


def truncate_prompt(text: str, limit: int = MAX_PROMPT_LENGTH) -> str:
    """Cut ``text`` to ``limit`` characters, ending it with an ellipsis."""

    if len(text) <= limit:
        return text
    logger.warning(
        "Prompt is too long (%d chars), truncating to %d chars", len(text), limit
    )
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def clamp_duration(
    value: Any,
    *,
    default: int = 30,
    maximum: int = 300,
) -> int:
    """Coerce a raw duration into whole seconds within ``[1, maximum]``."""

    if value is None or value == "":
        seconds = default
    else:
        try:
            seconds = int(float(value))
        except (OverflowError, TypeError, ValueError):
            seconds = default
        if seconds == 0:
            seconds = default
    return max(1, min(seconds, maximum))


def plan_segments(
    prompt: str,
    requested_duration: float,
    *,
    structured_parts: Optional[Sequence[str]] = None,
    max_segment_seconds: int = MAX_SEGMENT_SECONDS,
    max_prompt_length: int = MAX_PROMPT_LENGTH,
) -> SegmentPlan:
    """Lay out the provider calls needed to cover ``requested_duration``.

    Structured prompts get one evenly sized segment per part, each part used
    verbatim. Otherwise the duration is cut into ``max_segment_seconds``
    slices; the first slice gets a production-quality directive, the rest a
    continuation directive, and the last slice absorbs the remainder.
    """

    parts = list(structured_parts or [])
    structured = bool(parts)

    if structured:
        count = len(parts)
        nominal = requested_duration / count
    else:
        count = max(1, math.ceil(requested_duration / max_segment_seconds))
        nominal = float(max_segment_seconds)

    segments: list[SegmentSpec] = []
    for index in range(count):
        start = index * nominal
        # Boundaries are computed from the index so end[i] == start[i + 1] exactly.
        end = requested_duration if index == count - 1 else (index + 1) * nominal
        duration = end - start

        if structured:
            source = parts[index] or EMPTY_PART_PROMPT
            effective = source
        else:
            source = prompt
            template = CONTINUATION_TEMPLATE if index > 0 else OPENING_TEMPLATE
            effective = template.format(prompt=prompt)

        segments.append(
            SegmentSpec(
                index=index,
                start_time=start,
                end_time=end,
                duration_seconds=duration,
                prompt_text=truncate_prompt(effective, max_prompt_length),
                source_prompt=source,
                is_continuation=index > 0 and not structured,
            )
        )

    return SegmentPlan(
        total_duration=requested_duration,
        segment_duration=nominal,
        segments=tuple(segments),
        structured=structured,
    )


__all__ = [
    "CONTINUATION_TEMPLATE",
    "MAX_PROMPT_LENGTH",
    "MAX_SEGMENT_SECONDS",
    "OPENING_TEMPLATE",
    "clamp_duration",
    "is_structured_prompt",
    "parse_structured_prompt",
    "plan_segments",
    "truncate_prompt",
]
