"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

This module imports nothing from the ``triage`` package so every other module
can depend on it.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields keep API keys and signing secrets out of logs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000

    # -- Storage ---------------------------------------------------------------
    db_path: Path = Path("data/triage.db")

    # -- Gmail -----------------------------------------------------------------
    gmail_token_path: Path = Path("token.json")
    gmail_credentials_path: Path = Path("credentials.json")
    inbox_max_results: int = Field(default=20, ge=1, le=500)

    # -- Ordering scraper ------------------------------------------------------
    scraper_base_url: str = ""
    scraper_api_key: SecretStr = SecretStr("")
    scraper_timeout_seconds: float = 30.0

    # -- Voice transport -------------------------------------------------------
    voice_webhook_secret: SecretStr = SecretStr("")

    # -- Triage behaviour ------------------------------------------------------
    undo_window_seconds: int = Field(default=15, gt=0)
    announcement_excerpt_chars: int = Field(default=500, gt=0)

    # -- Concurrency -----------------------------------------------------------
    lease_ttl_seconds: int = Field(default=30, gt=0)
    lock_idle_ttl_seconds: int = Field(default=1800, gt=0)
    sweep_interval_seconds: int = Field(default=60, gt=0)

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Only the structured error list: the exception text can echo secret values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In production mode a missing credential aborts startup with a summary on
    stderr.  In development each missing credential is logged as a warning.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.gmail_token_path.exists():
        errors.append(f"Gmail token file not found: {settings.gmail_token_path}")

    if not settings.voice_webhook_secret.get_secret_value():
        errors.append("VOICE_WEBHOOK_SECRET is empty or not set")

    if settings.scraper_base_url and not settings.scraper_api_key.get_secret_value():
        errors.append("SCRAPER_API_KEY is empty but SCRAPER_BASE_URL is set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
