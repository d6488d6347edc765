"""Triage session state machine with transition validation."""

from triage.state_machine.machine import SessionStateMachine, utc_now
from triage.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    SessionEvent,
)

__all__ = [
    "SessionEvent",
    "SessionStateMachine",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "utc_now",
]
