"""Command vocabulary and the result envelope returned to the voice surface."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from triage.domain.errors import InvalidCommandError
from triage.domain.types import ActionKind


class Command(StrEnum):
    """Every command the dispatcher accepts."""

    ARCHIVE = "archive"
    DELETE = "delete"
    STAR = "star"
    SKIP = "skip"
    UNDO = "undo"
    QUERY_REMAINING = "queryRemaining"
    END_SESSION = "endSession"
    GET_CURRENT = "getCurrent"


ACTION_COMMANDS: dict[Command, ActionKind] = {
    Command.ARCHIVE: ActionKind.ARCHIVE,
    Command.DELETE: ActionKind.DELETE,
    Command.STAR: ActionKind.STAR,
}

# Commands that never change session state, so they do not resume a paused session.
READ_ONLY_COMMANDS: frozenset[Command] = frozenset({Command.QUERY_REMAINING, Command.GET_CURRENT})

_LOOKUP: dict[str, Command] = {
    key: command
    for command in Command
    for key in (command.value.lower(), command.name.lower(), command.name.lower().replace("_", ""))
}


def parse_command(name: object) -> Command:
    """Resolve a raw command name to a ``Command``.

    Matching ignores case and accepts ``snake_case`` spellings, so
    ``"queryRemaining"``, ``"query_remaining"`` and ``"QUERYREMAINING"`` all
    resolve to ``Command.QUERY_REMAINING``.

    Raises:
        InvalidCommandError: If *name* is not a string or not a known command.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidCommandError(str(name), "command name must be a non-empty string")
    command = _LOOKUP.get(name.strip().lower())
    if command is None:
        raise InvalidCommandError(name)
    return command


class CommandResult(BaseModel):
    """Outcome of one command: structured data plus the sentence to speak.

    ``data["success"]`` always mirrors ``success`` so a client reading either
    one sees the same outcome.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    spoken_message: str

    @model_validator(mode="after")
    def data_agrees_with_success(self) -> CommandResult:
        if self.data.get("success", self.success) != self.success:
            raise ValueError("data.success disagrees with success")
        return self

    @classmethod
    def of(cls, success: bool, spoken_message: str, data: dict[str, Any] | None = None) -> CommandResult:
        """Build a result, stamping ``success`` into the data payload."""
        payload = dict(data or {})
        payload["success"] = success
        return cls(success=success, data=payload, spoken_message=spoken_message)
