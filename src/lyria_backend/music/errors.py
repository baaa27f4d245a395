"""Classification of Lyria provider failures into client-facing errors.

Provider errors arrive as free text. The rules below are matched in order
against that text (and, for artist references, against the user's prompt)
and were derived from messages observed from the provider. New rules should
be appended so existing precedence does not change; bump
``RULESET_VERSION`` whenever the table changes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from fastapi import status

logger = logging.getLogger(__name__)

RULESET_VERSION = 1


class ErrorKind(str, Enum):
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    ARTIST_REFERENCE_BLOCKED = "ARTIST_REFERENCE_BLOCKED"
    GENERATION_FAILED = "GENERATION_FAILED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


@dataclass(frozen=True, slots=True)
class GenerationFailure:
    """A classified failure ready to be returned to the client."""

    kind: ErrorKind
    status_code: int
    error: str
    message: str
    user_prompt: str
    suggestions: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class _ErrorTemplate:
    status_code: int
    error: str
    message: str
    suggestions: tuple[str, ...] = ()


_TEMPLATES: dict[ErrorKind, _ErrorTemplate] = {
    ErrorKind.CONTENT_BLOCKED: _ErrorTemplate(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=(
            "Your prompt was blocked by content safety filters. This can happen "
            "when the prompt might generate music too similar to existing "
            "copyrighted works."
        ),
        message=(
            "Your prompt was blocked by content safety filters. This can happen "
            "when the prompt might generate music too similar to existing "
            "copyrighted works. Try rephrasing your prompt to be more unique "
            "and creative."
        ),
        suggestions=(
            'Try "cinematic orchestral composition" instead of "epic orchestral piece"',
            'Use specific instruments: "brass fanfare with timpani" or "string quartet with piano"',
            'Add technical terms: "allegro symphonic movement" or "dramatic crescendo with full orchestra"',
            'Focus on mood: "triumphant heroic theme" or "mysterious atmospheric soundscape"',
            "Avoid generic phrases - be more creative and specific with your descriptions",
            'Try "grand symphonic overture" or "powerful orchestral suite" instead',
        ),
    ),
    ErrorKind.SERVICE_UNAVAILABLE: _ErrorTemplate(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        error="The music generation service is temporarily unavailable.",
        message=(
            "The music generation service is temporarily unavailable. "
            "Please try again later."
        ),
    ),
    ErrorKind.ARTIST_REFERENCE_BLOCKED: _ErrorTemplate(
        status_code=status.HTTP_400_BAD_REQUEST,
        error="Your prompt was blocked because it referenced a specific artist.",
        message=(
            'Prompts containing references to specific artists (e.g., "in the '
            'style of Ed Sheeran") are not allowed to protect artist rights. '
            "Please remove the artist's name and describe the musical style "
            "instead."
        ),
        suggestions=(
            'Instead of "in the style of Ed Sheeran", try "modern acoustic pop '
            'with heartfelt lyrics and intricate guitar".',
            "Describe the instrumentation, tempo, and mood of the music you want.",
            "Focus on musical characteristics rather than artist names.",
        ),
    ),
    ErrorKind.GENERATION_FAILED: _ErrorTemplate(
        status_code=status.HTTP_400_BAD_REQUEST,
        error="Music generation failed.",
        message=(
            "Music generation failed. Please try a different prompt or adjust "
            "your parameters."
        ),
        suggestions=(
            "Try simplifying your prompt",
            "Reduce the duration if it's very long",
            "Check your temperature setting (0.1-1.0)",
            "Try a different creative approach",
        ),
    ),
    ErrorKind.UNEXPECTED_ERROR: _ErrorTemplate(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred during music generation.",
        message="Music generation failed due to an unexpected error: {detail}",
    ),
}

_CONTENT_BLOCKED_MARKERS = ("recitation", "blocked", "content safety")
_SERVICE_UNAVAILABLE_MARKERS = ("quota", "permission_denied", "exceeded", "rate limit")
_CLIENT_ERROR_PATTERN = re.compile(
    r"status 4\d\d|\b400\b|INVALID_ARGUMENT", re.IGNORECASE
)

ARTIST_REFERENCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"in the style of ([\w\s]+)", re.IGNORECASE),
    re.compile(r"by ([\w\s]+)", re.IGNORECASE),
    re.compile(r"sounds like ([\w\s]+)", re.IGNORECASE),
    re.compile(r"a mix of ([\w\s]+) and ([\w\s]+)", re.IGNORECASE),
    re.compile(r"inspired by ([\w\s]+)", re.IGNORECASE),
    re.compile(r"Ed Sheeran", re.IGNORECASE),
    re.compile(r"Taylor Swift", re.IGNORECASE),
    re.compile(r"The Beatles", re.IGNORECASE),
    re.compile(r"John Williams", re.IGNORECASE),
)


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def is_client_error(provider_message: str) -> bool:
    """Return True for 4xx / INVALID_ARGUMENT class provider errors."""

    return bool(_CLIENT_ERROR_PATTERN.search(provider_message))


def references_artist(prompt: str) -> bool:
    return any(pattern.search(prompt) for pattern in ARTIST_REFERENCE_PATTERNS)


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    kind: ErrorKind
    matches: Callable[[str, str], bool]


CLASSIFIER_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        ErrorKind.CONTENT_BLOCKED,
        lambda message, _prompt: _contains_any(message, _CONTENT_BLOCKED_MARKERS),
    ),
    ClassificationRule(
        ErrorKind.SERVICE_UNAVAILABLE,
        lambda message, _prompt: _contains_any(message, _SERVICE_UNAVAILABLE_MARKERS),
    ),
    ClassificationRule(
        ErrorKind.ARTIST_REFERENCE_BLOCKED,
        lambda message, prompt: is_client_error(message) and references_artist(prompt),
    ),
    ClassificationRule(
        ErrorKind.GENERATION_FAILED,
        lambda message, _prompt: is_client_error(message),
    ),
)


def build_failure(
    kind: ErrorKind, user_prompt: str, detail: Optional[str] = None
) -> GenerationFailure:
    """Construct the client-facing failure for ``kind``."""

    template = _TEMPLATES[kind]
    return GenerationFailure(
        kind=kind,
        status_code=template.status_code,
        error=template.error,
        message=template.message.format(detail=detail or "unknown error"),
        user_prompt=user_prompt,
        suggestions=template.suggestions,
    )


def classify_provider_error(
    provider_message: Optional[str], user_prompt: Optional[str]
) -> GenerationFailure:
    """Map a raw provider error message to a ``GenerationFailure``.

    Never raises: anything that matches no rule, or breaks a rule, is
    reported as ``UNEXPECTED_ERROR`` with the raw message echoed back.
    """

    message = provider_message or ""
    prompt = user_prompt or ""

    kind = ErrorKind.UNEXPECTED_ERROR
    try:
        for rule in CLASSIFIER_RULES:
            if rule.matches(message, prompt):
                kind = rule.kind
                break
    except Exception:  # pragma: no cover - rules are plain string checks
        logger.exception("Error classifier rule failed; reporting unexpected error")
        kind = ErrorKind.UNEXPECTED_ERROR

    logger.warning("Classified provider error as %s: %s", kind.value, message)
    return build_failure(kind, prompt, detail=message)


__all__ = [
    "ARTIST_REFERENCE_PATTERNS",
    "CLASSIFIER_RULES",
    "ClassificationRule",
    "ErrorKind",
    "GenerationFailure",
    "RULESET_VERSION",
    "build_failure",
    "classify_provider_error",
    "is_client_error",
    "references_artist",
]
