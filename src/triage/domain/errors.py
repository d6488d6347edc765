"""Domain-specific exception classes for the triage service."""

from triage.domain.types import SessionStatus


class TriageError(Exception):
    """Base class for all domain errors in the triage service."""


class SessionNotFoundError(TriageError):
    """Raised when a command names a session that does not exist.

    Attributes:
        session_id: The identifier that could not be resolved.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class InvalidCommandError(TriageError):
    """Raised when a command name or its parameters are malformed.

    Attributes:
        command: The rejected command name as received.
    """

    def __init__(self, command: str, reason: str = "unknown command") -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Invalid command '{command}': {reason}")


class InvalidTransitionError(TriageError):
    """Raised when an invalid session status transition is attempted.

    Attributes:
        current_status: The status the session was in when the transition was attempted.
        event: The event that was rejected.
    """

    def __init__(self, current_status: SessionStatus, event: str) -> None:
        self.current_status = current_status
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in status '{current_status}'")


class SessionBusyError(TriageError):
    """Raised when another worker holds the lease for a session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} is locked by another worker")


class NothingToUndoError(TriageError):
    """Raised when a session has no live undo entry (none recorded, or expired)."""


class InvariantViolationError(TriageError):
    """Base class for conditions that indicate a bug in the core, not bad input."""


class QueueInvariantError(InvariantViolationError):
    """Raised when queue positions are not dense or a canonical id repeats."""


class CursorOutOfBoundsError(InvariantViolationError):
    """Raised when a cursor move would leave ``0 <= cursor <= len(queue)``."""

    def __init__(self, cursor: int, length: int) -> None:
        self.cursor = cursor
        self.length = length
        super().__init__(f"Cursor {cursor} is outside queue of length {length}")


class StaleSessionError(InvariantViolationError):
    """Raised when a conditional session write finds a newer version in storage."""

    def __init__(self, session_id: str, expected_version: int) -> None:
        self.session_id = session_id
        self.expected_version = expected_version
        super().__init__(
            f"Session {session_id} changed underneath us (expected version {expected_version})"
        )
