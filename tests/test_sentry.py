"""Tests for Sentry SDK initialization and structlog-sentry bridge."""

from __future__ import annotations

from unittest.mock import patch

from triage.observability.sentry import _scrub_event, get_sentry_processor, init_sentry


def test_init_sentry_noop_with_empty_dsn() -> None:
    with patch("triage.observability.sentry.sentry_sdk.init") as mock_init:
        assert init_sentry("") is False
        mock_init.assert_not_called()


def test_init_sentry_calls_sdk_with_dsn() -> None:
    test_dsn = "https://examplePublicKey@o0.ingest.sentry.io/0"
    with (
        patch("triage.observability.sentry.sentry_sdk.init") as mock_init,
        patch("triage.observability.sentry.sentry_sdk.set_tag") as mock_tag,
    ):
        assert init_sentry(test_dsn, environment="development") is True

    kwargs = mock_init.call_args.kwargs
    assert kwargs["dsn"] == test_dsn
    assert kwargs["environment"] == "development"
    assert kwargs["send_default_pii"] is False
    assert kwargs["traces_sample_rate"] == 0.1
    mock_tag.assert_called_once_with("service", "voice-triage")


def test_scrub_event_hides_mail_content() -> None:
    event = {"extra": {"spoken_message": "Next email from Ana", "session_id": "s1"}}

    scrubbed = _scrub_event(event, {})

    assert scrubbed["extra"] == {"spoken_message": "[scrubbed]", "session_id": "s1"}


def test_scrub_event_without_extra() -> None:
    assert _scrub_event({"message": "boom"}, {}) == {"message": "boom"}


def test_get_sentry_processor_returns_callable() -> None:
    assert callable(get_sentry_processor())
