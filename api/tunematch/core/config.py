"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
DEFAULT_WORKER_QUEUES = ["default", "enrichment"]


def _split_list(value: str | list[str] | None) -> list[str] | None:
    """Parse JSON arrays, CSV strings, or lists into trimmed entries.

    Returns None when the input carries no usable entries so callers can pick
    their own default.
    """
    if isinstance(value, list):
        cleaned = [str(item).strip() for item in value if isinstance(item, str) and item.strip()]
        return cleaned or None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped:
        return None
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        cleaned = [str(item).strip() for item in parsed if str(item).strip()]
        return cleaned or None
    entries = [item.strip() for item in stripped.split(",") if item.strip()]
    return entries or None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "TuneMatch API"
    environment: str = "development"
    api_prefix: str = "/api"

    database_url: str
    test_database_url: Optional[str] = None

    log_level: str = "INFO"
    cors_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())
    health_allowlist: list[str] | str = Field(default_factory=list)

    redis_url: str = "redis://redis:6379/0"
    worker_queue_names: list[str] | str = Field(default_factory=lambda: DEFAULT_WORKER_QUEUES.copy())

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 15.0
    gemini_connect_attempts: int = 2
    scoring_circuit_threshold: int = 3
    scoring_circuit_cooldown_seconds: float = 30.0

    suggestion_default_count: int = 10
    suggestion_max_count: int = 50
    suggestion_min_score: float = 50.0
    suggestion_batch_cap: int = 50
    suggestion_batch_multiplier: int = 3
    suggestion_refill_multiplier: int = 2

    enrichment_min_score: float = 60.0
    enrichment_max_entries: int = 10
    enrichment_min_interval_seconds: float = 0.5
    enrichment_job_timeout_seconds: int = 300

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        return _split_list(value) or DEFAULT_CORS_ORIGINS.copy()

    @field_validator("worker_queue_names", mode="before")
    @classmethod
    def _split_worker_queue_names(cls, value: str | list[str] | None) -> list[str]:
        """Normalize worker queue names; an empty value falls back to the default queue."""
        return _split_list(value) or ["default"]

    @field_validator("health_allowlist", mode="before")
    @classmethod
    def _split_health_allowlist(cls, value: str | list[str] | None) -> list[str]:
        return _split_list(value) or []

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
