"""Command dispatch: vocabulary, spoken replies, locking, and the dispatcher."""

from triage.dispatch.commands import (
    ACTION_COMMANDS,
    READ_ONLY_COMMANDS,
    Command,
    CommandResult,
    parse_command,
)
from triage.dispatch.dispatcher import SessionStart, TriageDispatcher
from triage.dispatch.locks import SessionLocks

__all__ = [
    "ACTION_COMMANDS",
    "READ_ONLY_COMMANDS",
    "Command",
    "CommandResult",
    "SessionLocks",
    "SessionStart",
    "TriageDispatcher",
    "parse_command",
]
