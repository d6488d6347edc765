"""Prometheus metrics instrumentation for the triage service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business counters.
- ``COMMANDS_TOTAL``: Counter of dispatched commands by name and outcome.
- ``SESSIONS_STARTED``: Counter of triage sessions created.
- ``UNDO_APPLIED``: Counter of successful undos.

Business metrics are updated by the dispatcher as commands complete.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

COMMANDS_TOTAL: Counter = Counter(
    "triage_commands_total",
    "Dispatched triage commands by command name and outcome",
    ["command", "outcome"],
)

SESSIONS_STARTED: Counter = Counter(
    "triage_sessions_started_total",
    "Total number of triage sessions created",
)

UNDO_APPLIED: Counter = Counter(
    "triage_undo_applied_total",
    "Total number of actions successfully reversed by undo",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
