"""Resilience infrastructure for read-only collaborator calls."""

from triage.resilience.retry import resilient_api_call

__all__ = [
    "resilient_api_call",
]
