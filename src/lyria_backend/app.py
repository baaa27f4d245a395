"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .lyria import LyriaClient
from .music.orchestrator import MusicGenerationService
from .routers.generate import router as generate_router
from .routers.sessions import router as sessions_router
from .services.session_store import SessionStore


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("lyria_backend").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Request bodies carry base64 audio; keep transport logs quiet unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    settings: Optional[Settings] = None,
    *,
    lyria_client: Optional[LyriaClient] = None,
) -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = settings or get_settings()
    client = lyria_client or LyriaClient(settings)
    session_store = SessionStore()
    generation_service = MusicGenerationService(settings, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(client.aclose(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("Lyria client shutdown timed out after 10s")
            except Exception as exc:
                logging.warning("Error during Lyria client shutdown: %s", exc)

    app = FastAPI(
        title="Lyria Music Backend",
        version="0.1.0",
        description="Segmented long-form music generation powered by Vertex AI Lyria.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.lyria_client = client
    app.state.session_store = session_store
    app.state.generation_service = generation_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generate_router)
    app.include_router(sessions_router)

    @app.get("/health", tags=["health"])
    @app.get("/api/health", tags=["health"], include_in_schema=False)
    async def healthcheck() -> dict[str, str]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


__all__ = ["create_app"]
