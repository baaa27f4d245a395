"""Music generation API routes."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..music.models import GenerationRequest
from ..music.orchestrator import MusicGenerationService
from ..music.prompts import clamp_duration
from ..schemas.generation import (
    GenerationErrorResponse,
    GenerationSuccessResponse,
    outcome_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])


def get_generation_service(request: Request) -> MusicGenerationService:
    service = getattr(request.app.state, "generation_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Generation service unavailable")
    return service


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def _parse_int(value: Optional[str], field: str) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        pass
    # Decimal strings such as "42.0"
    try:
        return int(float(value))
    except (OverflowError, ValueError):
        logger.warning("Ignoring non-numeric %s value %r", field, value)
        return None


def _parse_float(value: Optional[str], field: str) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except (OverflowError, ValueError):
        logger.warning("Ignoring non-numeric %s value %r", field, value)
        return None


async def generation_form(
    prompt: str = Form(...),
    duration: Optional[str] = Form(default=None),
    negative_prompt: Optional[str] = Form(default=None, alias="negativePrompt"),
    seed: Optional[str] = Form(default=None),
    temperature: Optional[str] = Form(default=None),
    inspiration_audio: Optional[UploadFile] = File(
        default=None, alias="inspirationAudio"
    ),
    settings: Settings = Depends(get_app_settings),
) -> GenerationRequest:
    """Parse the multipart generation form into a clamped request."""

    inspiration: Optional[bytes] = None
    if inspiration_audio is not None:
        inspiration = await inspiration_audio.read()

    request = GenerationRequest(
        prompt=prompt,
        duration=clamp_duration(
            duration,
            default=settings.default_duration,
            maximum=settings.max_total_duration,
        ),
        negative_prompt=negative_prompt or None,
        seed=_parse_int(seed, "seed"),
        temperature=_parse_float(temperature, "temperature"),
        inspiration_audio=inspiration or None,
    )
    logger.info(
        "Received music generation request: duration=%ss seed=%s temperature=%s "
        "inspiration_audio=%s",
        request.duration,
        request.seed,
        request.temperature,
        request.has_inspiration_audio,
    )
    return request


@router.post(
    "/generate",
    response_model=None,
    responses={
        200: {"model": GenerationSuccessResponse},
        400: {"model": GenerationErrorResponse},
        500: {"model": GenerationErrorResponse},
        503: {"model": GenerationErrorResponse},
    },
)
@router.post("/api/generate-music", response_model=None, include_in_schema=False)
async def generate_music(
    generation_request: GenerationRequest = Depends(generation_form),
    service: MusicGenerationService = Depends(get_generation_service),
) -> JSONResponse:
    """Generate up to five minutes of music from a text prompt."""

    outcome = await service.generate(generation_request)
    return JSONResponse(status_code=outcome.status_code, content=outcome_payload(outcome))


__all__ = ["generation_form", "get_app_settings", "get_generation_service", "router"]
