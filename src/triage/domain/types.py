"""Domain enumerations and action/reverse-op mappings for the triage service."""

from enum import StrEnum


class SessionStatus(StrEnum):
    """States in the triage session lifecycle."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class MatchMethod(StrEnum):
    """How an observation was paired with a canonical message."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    NONE = "none"


class ActionKind(StrEnum):
    """Mutating actions a person can apply to the current item."""

    ARCHIVE = "archive"
    DELETE = "delete"
    STAR = "star"


class MailboxOp(StrEnum):
    """Every mutation the message backend is asked to perform.

    Includes the three forward actions and their inverses.
    """

    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    DELETE = "delete"
    UNDELETE = "undelete"
    STAR = "star"
    UNSTAR = "unstar"


# Forward action -> backend op that reverses it
REVERSE_OPS: dict[ActionKind, MailboxOp] = {
    ActionKind.ARCHIVE: MailboxOp.UNARCHIVE,
    ActionKind.DELETE: MailboxOp.UNDELETE,
    ActionKind.STAR: MailboxOp.UNSTAR,
}


def forward_op(kind: ActionKind) -> MailboxOp:
    """Return the backend op that performs *kind*."""
    return MailboxOp(kind.value)


def reverse_op_for(kind: ActionKind) -> MailboxOp:
    """Return the backend op that undoes *kind*.

    Raises:
        ValueError: If *kind* has no registered inverse.
    """
    try:
        return REVERSE_OPS[kind]
    except KeyError:
        raise ValueError(f"No reverse op registered for action: {kind}") from None
