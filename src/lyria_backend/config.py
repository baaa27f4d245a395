"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_NEGATIVE_PROMPT = "low quality, distorted, noise, static, poor audio quality"


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "host"),
    )
    port: int = Field(
        default=3002,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "port"),
    )

    # Vertex AI / Lyria
    vertex_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "VERTEX_AI_PROJECT_ID",
            "VITE_VERTEX_AI_PROJECT_ID",
            "vertex_project_id",
        ),
    )
    vertex_location: str = Field(
        default="us-central1",
        validation_alias=AliasChoices(
            "VERTEX_AI_LOCATION",
            "VITE_VERTEX_AI_LOCATION",
            "vertex_location",
        ),
    )
    vertex_endpoint: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("VERTEX_AI_ENDPOINT", "vertex_endpoint"),
        description="Full predict URL; derived from project/location/model when unset.",
    )
    vertex_access_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VERTEX_ACCESS_TOKEN", "vertex_access_token"),
    )
    google_application_credentials: Path = Field(
        default_factory=lambda: Path("credentials/service-account-key.json"),
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "google_application_credentials",
        ),
    )
    lyria_model: str = Field(
        default="lyria-002",
        validation_alias=AliasChoices("LYRIA_MODEL", "lyria_model"),
    )
    request_timeout: float = Field(
        default=120.0,
        ge=1,
        validation_alias=AliasChoices("LYRIA_TIMEOUT", "timeout"),
    )

    # Segmented generation
    max_total_duration: int = Field(
        default=300,
        ge=1,
        validation_alias=AliasChoices("MAX_TOTAL_DURATION", "max_total_duration"),
    )
    max_segment_seconds: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("MAX_SEGMENT_SECONDS", "max_segment_seconds"),
    )
    max_prompt_length: int = Field(
        default=2000,
        ge=4,
        validation_alias=AliasChoices("MAX_PROMPT_LENGTH", "max_prompt_length"),
    )
    default_duration: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("DEFAULT_DURATION", "default_duration"),
    )
    default_negative_prompt: str = Field(
        default=DEFAULT_NEGATIVE_PROMPT,
        validation_alias=AliasChoices(
            "DEFAULT_NEGATIVE_PROMPT",
            "default_negative_prompt",
        ),
    )
    default_temperature: float = Field(
        default=0.7,
        ge=0,
        validation_alias=AliasChoices("DEFAULT_TEMPERATURE", "default_temperature"),
    )

    # Pricing, expressed per `cost_unit_seconds` of generated audio
    cost_per_unit: float = Field(
        default=0.08,
        ge=0,
        validation_alias=AliasChoices("COST_PER_UNIT", "cost_per_unit"),
    )
    variation_cost_per_unit: float = Field(
        default=0.03,
        ge=0,
        validation_alias=AliasChoices(
            "VARIATION_COST_PER_UNIT",
            "variation_cost_per_unit",
        ),
    )
    cost_unit_seconds: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("COST_UNIT_SECONDS", "cost_unit_seconds"),
    )

    @property
    def predict_url(self) -> str | None:
        """Return the Lyria predict URL, or None until a project id is known."""

        if self.vertex_endpoint is not None:
            return str(self.vertex_endpoint)
        if not self.vertex_project_id:
            return None
        return build_predict_url(
            self.vertex_project_id, self.vertex_location, self.lyria_model
        )

    def generation_cost(self, duration: float, *, variation: bool = False) -> float:
        per_unit = self.variation_cost_per_unit if variation else self.cost_per_unit
        return (duration / self.cost_unit_seconds) * per_unit


def build_predict_url(project_id: str, location: str, model: str) -> str:
    return (
        f"https://{location}-aiplatform.googleapis.com/v1/projects/{project_id}"
        f"/locations/{location}/publishers/google/models/{model}:predict"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_NEGATIVE_PROMPT", "Settings", "build_predict_url", "get_settings"]
