"""Sentry error reporting for the triage service.

``init_sentry`` is a no-op without a DSN so local runs and tests never touch
the network.  ``get_sentry_processor`` bridges structlog ERROR events into
Sentry so ``logger.exception(...)`` calls in the dispatcher surface as issues.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

# Spoken replies and message excerpts can carry mail content; keep them out of Sentry.
_SCRUBBED_KEYS = frozenset({"spoken_message", "snippet", "body", "excerpt"})


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    extra = event.get("extra")
    if isinstance(extra, dict):
        for key in _SCRUBBED_KEYS & extra.keys():
            extra[key] = "[scrubbed]"
    return event


def init_sentry(dsn: str, environment: str = "production") -> bool:
    """Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN.  Empty string disables Sentry.
        environment: Environment tag attached to every event.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_event,
        integrations=[
            # structlog-sentry does the capturing; stdlib logging capture would double-report.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    sentry_sdk.set_tag("service", "voice-triage")
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor forwarding ERROR events to Sentry.

    Place it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
