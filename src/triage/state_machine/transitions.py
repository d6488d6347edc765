"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from triage.domain.types import SessionStatus


class SessionEvent(StrEnum):
    """Events that can change a triage session's status."""

    PAUSE = "pause"
    RESUME = "resume"
    EXHAUST = "exhaust"
    END = "end"
    REOPEN = "reopen"


# All valid (current_status, event_string) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[SessionStatus, str], SessionStatus] = {
    # From ACTIVE
    (SessionStatus.ACTIVE, SessionEvent.PAUSE): SessionStatus.PAUSED,
    (SessionStatus.ACTIVE, SessionEvent.EXHAUST): SessionStatus.COMPLETED,
    (SessionStatus.ACTIVE, SessionEvent.END): SessionStatus.COMPLETED,
    # From PAUSED
    (SessionStatus.PAUSED, SessionEvent.RESUME): SessionStatus.ACTIVE,
    (SessionStatus.PAUSED, SessionEvent.END): SessionStatus.COMPLETED,
    # From COMPLETED -- only an undo rewind out of an exhausted queue
    (SessionStatus.COMPLETED, SessionEvent.REOPEN): SessionStatus.ACTIVE,
}

# A completed session accepts no further commands that move it forward.
TERMINAL_STATES: frozenset[SessionStatus] = frozenset({SessionStatus.COMPLETED})
