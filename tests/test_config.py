"""Tests for centralized Settings, credential validation, and get_settings cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from triage.config import Settings, get_settings, validate_credentials


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.port == 8000
        assert s.db_path == Path("data/triage.db")
        assert s.gmail_token_path == Path("token.json")
        assert s.undo_window_seconds == 15
        assert s.announcement_excerpt_chars == 500
        assert s.scraper_base_url == ""

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("PORT", "9090")
        monkeypatch.setenv("VOICE_WEBHOOK_SECRET", "s3cret")
        monkeypatch.setenv("UNDO_WINDOW_SECONDS", "30")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.port == 9090
        assert s.voice_webhook_secret.get_secret_value() == "s3cret"
        assert s.undo_window_seconds == 30

    def test_secret_not_in_repr(self) -> None:
        s = Settings(_env_file=None, voice_webhook_secret="s3cret")  # type: ignore[call-arg]
        assert "s3cret" not in repr(s)

    def test_rejects_non_positive_undo_window(self) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, undo_window_seconds=0)  # type: ignore[call-arg]


class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_production_missing_exits(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            gmail_token_path=tmp_path / "nonexistent_token.json",
            voice_webhook_secret="",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_production_scraper_url_requires_key(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token.json"
        token_file.write_text("{}")
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            gmail_token_path=token_file,
            voice_webhook_secret="s3cret",  # type: ignore[arg-type]
            scraper_base_url="http://scraper.local",
        )

        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_production_valid(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token.json"
        token_file.write_text("{}")
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            gmail_token_path=token_file,
            voice_webhook_secret="s3cret",  # type: ignore[arg-type]
            scraper_base_url="http://scraper.local",
            scraper_api_key="k3y",  # type: ignore[arg-type]
        )

        validate_credentials(settings)

    def test_dev_mode_warns_without_exit(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=False,
            gmail_token_path=tmp_path / "missing_token.json",
        )

        validate_credentials(settings)


class TestGetSettingsCached:
    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PRODUCTION", raising=False)

        assert get_settings() is get_settings()
