"""Domain types, models, and errors for the triage service."""

from triage.domain.errors import (
    CursorOutOfBoundsError,
    InvalidCommandError,
    InvalidTransitionError,
    InvariantViolationError,
    NothingToUndoError,
    QueueInvariantError,
    SessionBusyError,
    SessionNotFoundError,
    StaleSessionError,
    TriageError,
)
from triage.domain.models import (
    CanonicalMessage,
    EmailContent,
    ExternalObservation,
    MappingResult,
    QueueItem,
    Session,
    UndoEntry,
    validate_queue,
)
from triage.domain.types import (
    REVERSE_OPS,
    ActionKind,
    MailboxOp,
    MatchMethod,
    SessionStatus,
    forward_op,
    reverse_op_for,
)

__all__ = [
    "REVERSE_OPS",
    "ActionKind",
    "CanonicalMessage",
    "CursorOutOfBoundsError",
    "EmailContent",
    "ExternalObservation",
    "InvalidCommandError",
    "InvalidTransitionError",
    "InvariantViolationError",
    "MailboxOp",
    "MappingResult",
    "MatchMethod",
    "NothingToUndoError",
    "QueueInvariantError",
    "QueueItem",
    "Session",
    "SessionBusyError",
    "SessionNotFoundError",
    "SessionStatus",
    "StaleSessionError",
    "TriageError",
    "UndoEntry",
    "forward_op",
    "reverse_op_for",
    "validate_queue",
]
