"""Vertex AI Lyria client for single-segment music generation."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import math
from pathlib import Path
from typing import Any, Optional

import google.auth
import httpx
from fastapi import status
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .config import Settings, build_predict_url

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class LyriaError(Exception):
    """Wrap transport or API failures when communicating with Lyria."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(
            f"Lyria request failed with status {status_code}: {self._detail_text()}"
        )

    def _detail_text(self) -> str:
        if isinstance(self.detail, str):
            return self.detail
        return json.dumps(self.detail, default=repr)


class EmptyPredictionError(LyriaError):
    """Raised when Lyria answers successfully but returns no audio."""

    def __init__(self, detail: Any):
        super().__init__(status.HTTP_502_BAD_GATEWAY, detail)


class LyriaClient:
    """Client responsible for calling the Lyria ``:predict`` endpoint."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[float, httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client
        self._credentials: Credentials | None = None
        self._project_id: str | None = settings.vertex_project_id
        self._credentials_lock = asyncio.Lock()

    @property
    def model_name(self) -> str:
        return self._settings.lyria_model

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = float(self._settings.request_timeout)
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    def _load_credentials(self) -> Credentials:
        """Load service account credentials, falling back to ADC."""

        key_path = Path(self._settings.google_application_credentials).expanduser()
        if key_path.exists():
            logger.info("Using service account key file for authentication")
            credentials = service_account.Credentials.from_service_account_file(
                str(key_path), scopes=[CLOUD_PLATFORM_SCOPE]
            )
            if not self._project_id:
                self._project_id = credentials.project_id
            return credentials

        logger.info("Attempting to use Application Default Credentials")
        credentials, project_id = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        if not self._project_id:
            self._project_id = project_id
        return credentials

    def _refresh_token(self) -> str:
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    async def _access_token(self) -> str:
        static_token = self._settings.vertex_access_token
        if static_token is not None:
            return static_token.get_secret_value()

        async with self._credentials_lock:
            try:
                return await asyncio.to_thread(self._refresh_token)
            except (GoogleAuthError, OSError, ValueError) as exc:
                logger.error("Authentication with Google Cloud failed: %s", exc)
                raise LyriaError(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "Failed to authenticate with Google Cloud. Please set up "
                    "service account credentials or ADC.",
                ) from exc

    def _predict_url(self) -> str:
        url = self._settings.predict_url
        if url is not None:
            return url
        if not self._project_id:
            raise LyriaError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Project ID not found in service account key or environment variables",
            )
        return build_predict_url(
            self._project_id, self._settings.vertex_location, self.model_name
        )

    def build_instance(
        self,
        prompt: str,
        duration_seconds: float,
        *,
        negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        instance: dict[str, Any] = {
            "prompt": prompt,
            "negative_prompt": negative_prompt or self._settings.default_negative_prompt,
            "duration": math.floor(duration_seconds + 0.5),
            "temperature": (
                temperature
                if temperature is not None
                else self._settings.default_temperature
            ),
        }
        if seed is not None:
            instance["seed"] = seed
        return instance

    async def generate_segment(
        self,
        prompt: str,
        duration_seconds: float,
        *,
        negative_prompt: Optional[str] = None,
        seed: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> bytes:
        """Generate one clip and return the decoded WAV bytes.

        Exactly one provider call is made; failures are raised as
        ``LyriaError`` without retrying.
        """

        payload = {
            "instances": [
                self.build_instance(
                    prompt,
                    duration_seconds,
                    negative_prompt=negative_prompt,
                    seed=seed,
                    temperature=temperature,
                )
            ],
            "parameters": {},
        }

        token = await self._access_token()
        url = self._predict_url()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        logger.debug("Sending request to Lyria endpoint %s: %s", url, payload)

        client = await self._get_http_client()
        try:
            response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise LyriaError(
                status.HTTP_504_GATEWAY_TIMEOUT, f"Request timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LyriaError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        logger.info("Lyria response status: %s", response.status_code)
        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            raise LyriaError(response.status_code, detail)

        try:
            body = response.json()
        except ValueError as exc:
            raise LyriaError(
                status.HTTP_502_BAD_GATEWAY, f"Failed to parse response: {exc}"
            ) from exc

        return self._extract_audio(body)

    @staticmethod
    def _extract_audio(body: Any) -> bytes:
        predictions = body.get("predictions") if isinstance(body, dict) else None
        if not predictions:
            raise EmptyPredictionError("No predictions received from Lyria API")

        first = predictions[0]
        encoded = first.get("bytesBase64Encoded") if isinstance(first, dict) else None
        if not encoded:
            raise EmptyPredictionError("No audio data found in the API response")

        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise LyriaError(
                status.HTTP_502_BAD_GATEWAY, f"Invalid audio payload: {exc}"
            ) from exc

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Lyria returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                pass


__all__ = ["EmptyPredictionError", "LyriaClient", "LyriaError"]
