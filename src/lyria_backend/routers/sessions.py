"""Chat session API routes wrapping music generation."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ..music.models import ChatSession, GenerationRequest, NewMessage
from ..music.orchestrator import (
    GenerationOutcome,
    MissingGenerationMetadata,
    MusicGenerationService,
)
from ..schemas.generation import outcome_payload
from ..schemas.sessions import (
    SessionCreatePayload,
    SessionResource,
    SessionSummary,
    VariationPayload,
)
from ..services.session_store import SessionStore
from .generate import generation_form, get_generation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

INSPIRATION_ONLY_PROMPT = "Generate music inspired by the uploaded audio."


def get_session_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Session store unavailable")
    return store


async def _require_session(store: SessionStore, session_id: str) -> ChatSession:
    session = await store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _success_text(outcome: GenerationOutcome, variation: Optional[str]) -> str:
    assert outcome.metadata is not None
    duration = outcome.metadata.duration
    cost = outcome.metadata.cost
    if variation:
        return (
            f"Variation created: {variation}\n"
            f"Duration: {duration:g}s | Cost: ${cost:.3f}"
        )
    return f"Generated {duration:g}s of music! Cost: ${cost:.3f}"


def _suggestions_text(outcome: GenerationOutcome) -> str:
    assert outcome.result is not None
    suggestions = "\n".join(f"- {item}" for item in outcome.result.suggestions)
    variations = "\n".join(
        f'- "{item}"' for item in outcome.result.continuation_prompts
    )
    return (
        f"Suggestions for improvement:\n{suggestions}\n\n"
        f"Quick variations:\n{variations}"
    )


async def _record_outcome(
    store: SessionStore,
    session_id: str,
    outcome: GenerationOutcome,
    *,
    variation: Optional[str] = None,
) -> Optional[ChatSession]:
    """Append the assistant messages describing ``outcome``."""

    if outcome.result is not None:
        session = await store.append_message(
            session_id,
            NewMessage(
                role="assistant",
                content=_success_text(outcome, variation),
                music_url=outcome.result.full_audio_url,
                metadata=outcome.metadata,
            ),
        )
        if variation is None and outcome.result.suggestions:
            session = await store.append_message(
                session_id,
                NewMessage(role="assistant", content=_suggestions_text(outcome)),
            )
        return session

    assert outcome.failure is not None
    return await store.append_message(
        session_id,
        NewMessage(
            role="assistant",
            content=f"Generation failed: {outcome.failure.error}",
            metadata=outcome.metadata,
        ),
    )


def _session_response(
    session: Optional[ChatSession], outcome: GenerationOutcome
) -> JSONResponse:
    if session is None:
        # The session was deleted while the generation was running.
        raise HTTPException(status_code=404, detail="Session not found")
    body: dict[str, Any] = {
        "session": SessionResource.from_session(session).model_dump(
            mode="json", by_alias=True
        ),
        "result": outcome_payload(outcome),
    }
    return JSONResponse(status_code=outcome.status_code, content=body)


@router.post("", response_model=SessionResource, status_code=201)
async def create_session(
    payload: SessionCreatePayload | None = None,
    store: SessionStore = Depends(get_session_store),
) -> SessionResource:
    session = await store.create_session(payload.title if payload else None)
    return SessionResource.from_session(session)


@router.get("", response_model=list[SessionSummary])
async def list_sessions(
    store: SessionStore = Depends(get_session_store),
) -> list[SessionSummary]:
    """List sessions, newest first."""
    return [SessionSummary.from_session(s) for s in await store.list_all()]


@router.get("/{session_id}", response_model=SessionResource)
async def read_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionResource:
    session = await _require_session(store, session_id)
    return SessionResource.from_session(session)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    await store.delete(session_id)
    return Response(status_code=204)


@router.post("/{session_id}/generate", response_model=None)
async def generate_in_session(
    session_id: str,
    generation_request: GenerationRequest = Depends(generation_form),
    store: SessionStore = Depends(get_session_store),
    service: MusicGenerationService = Depends(get_generation_service),
) -> JSONResponse:
    """Record the user's prompt, generate music, and record the result."""

    await _require_session(store, session_id)

    user_text = generation_request.prompt.strip() or INSPIRATION_ONLY_PROMPT
    await store.append_message(session_id, NewMessage(role="user", content=user_text))

    outcome = await service.generate(generation_request)
    session = await _record_outcome(store, session_id, outcome)
    return _session_response(session, outcome)


@router.post("/{session_id}/messages/{message_id}/variations", response_model=None)
async def create_variation(
    session_id: str,
    message_id: str,
    payload: VariationPayload,
    store: SessionStore = Depends(get_session_store),
    service: MusicGenerationService = Depends(get_generation_service),
) -> JSONResponse:
    """Generate a variation of a previously generated track."""

    session = await _require_session(store, session_id)
    parent = session.find_message(message_id)
    if parent is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if parent.metadata is None or parent.music_url is None:
        raise HTTPException(
            status_code=422, detail="Message has no generated music to vary"
        )

    await store.append_message(
        session_id,
        NewMessage(role="user", content=f"Create a variation: {payload.instructions}"),
    )

    try:
        outcome = await service.generate_variation(parent, payload.instructions)
    except MissingGenerationMetadata as exc:  # pragma: no cover - checked above
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    session = await _record_outcome(
        store, session_id, outcome, variation=payload.instructions
    )
    return _session_response(session, outcome)


__all__ = ["get_session_store", "router"]
