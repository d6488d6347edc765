"""Spoken replies.

Every sentence the voice agent reads aloud is built here so wording stays
consistent across commands.
"""

from __future__ import annotations

from triage.domain.models import QueueItem
from triage.domain.types import ActionKind

ACTION_CONFIRMATIONS: dict[ActionKind, str] = {
    ActionKind.ARCHIVE: "Archived.",
    ActionKind.DELETE: "Deleted.",
    ActionKind.STAR: "Starred for later.",
}

END_OF_QUEUE = "You've reached the end of your inbox. Nice work!"
NO_CURRENT_EMAIL = "You've reached the end of your inbox. Say 'stop' to end the session."
NOTHING_TO_UNDO = "Nothing to undo. The undo window may have expired."
ACTION_FAILED = "I'm sorry, that action failed. Please try again."
SESSION_ENDED = "This session has ended. Start a new session to keep triaging."
SESSION_BUSY = "I'm still working on your last request. Give me a moment and try again."
SESSION_NOT_FOUND = "I couldn't find an active triage session. Please start a new one."
UNKNOWN_COMMAND = "I don't understand that command. You can say archive, delete, star, skip, or undo."


def announce_next(item: QueueItem | None) -> str:
    if item is None:
        return END_OF_QUEUE
    return f"Next email from {item.sender}. Subject: {item.subject}. {item.snippet}".rstrip()


def action_message(kind: ActionKind, next_item: QueueItem | None) -> str:
    """Confirmation for archive/delete/star followed by the next announcement."""
    return f"{ACTION_CONFIRMATIONS[kind]} {announce_next(next_item)}"


def skip_message(next_item: QueueItem | None) -> str:
    return f"Skipped. {announce_next(next_item)}"


def undo_message(kind: ActionKind) -> str:
    return f"Undone. I've reversed the {kind.value} action. Let me re-read that email."


def remaining_message(remaining: int, total: int) -> str:
    if remaining == 0:
        return "You've processed all your emails. Nice work!"
    if remaining == 1:
        return "You have 1 email left."
    return f"You have {remaining} emails remaining out of {total} total."


def end_session_message(processed: int, remaining: int) -> str:
    if remaining > 0:
        return (
            f"Session ended. You processed {processed} emails with {remaining} remaining. "
            "See you next time!"
        )
    return f"Session complete! You processed all {processed} emails. Great job!"


def current_email_message(sender: str, subject: str, excerpt: str) -> str:
    return f"Email from {sender}. Subject: {subject}. {excerpt}".rstrip()
