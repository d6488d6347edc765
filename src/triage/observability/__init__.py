"""Observability: Prometheus metrics, request-id tracing, and Sentry reporting."""

from triage.observability.metrics import (
    COMMANDS_TOTAL,
    SESSIONS_STARTED,
    UNDO_APPLIED,
    setup_metrics,
)
from triage.observability.middleware import RequestIdMiddleware
from triage.observability.sentry import get_sentry_processor, init_sentry

__all__ = [
    "COMMANDS_TOTAL",
    "SESSIONS_STARTED",
    "UNDO_APPLIED",
    "RequestIdMiddleware",
    "get_sentry_processor",
    "init_sentry",
    "setup_metrics",
]
