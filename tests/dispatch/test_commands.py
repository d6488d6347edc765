"""Tests for command parsing and the CommandResult envelope."""

import pytest
from pydantic import ValidationError

from triage.dispatch.commands import (
    ACTION_COMMANDS,
    READ_ONLY_COMMANDS,
    Command,
    CommandResult,
    parse_command,
)
from triage.domain.errors import InvalidCommandError


class TestParseCommand:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("archive", Command.ARCHIVE),
            ("ARCHIVE", Command.ARCHIVE),
            (" skip ", Command.SKIP),
            ("queryRemaining", Command.QUERY_REMAINING),
            ("query_remaining", Command.QUERY_REMAINING),
            ("endSession", Command.END_SESSION),
            ("get_current", Command.GET_CURRENT),
        ],
    )
    def test_known_names(self, raw, expected):
        assert parse_command(raw) == expected

    def test_every_command_parses_from_its_value(self):
        for command in Command:
            assert parse_command(command.value) is command

    @pytest.mark.parametrize("raw", ["snooze", "", "   ", None, 42])
    def test_malformed_names_rejected(self, raw):
        with pytest.raises(InvalidCommandError):
            parse_command(raw)


class TestCommandSets:
    def test_action_commands(self):
        assert set(ACTION_COMMANDS) == {Command.ARCHIVE, Command.DELETE, Command.STAR}

    def test_read_only_commands(self):
        assert READ_ONLY_COMMANDS == {Command.QUERY_REMAINING, Command.GET_CURRENT}


class TestCommandResult:
    def test_of_stamps_success_into_data(self):
        result = CommandResult.of(False, "Nope.", {"reason": "x"})
        assert result.data == {"reason": "x", "success": False}

    def test_dump_uses_camel_case(self):
        payload = CommandResult.of(True, "Done.").model_dump(by_alias=True)
        assert payload == {"success": True, "data": {"success": True}, "spokenMessage": "Done."}

    def test_disagreeing_data_rejected(self):
        with pytest.raises(ValidationError):
            CommandResult(success=True, data={"success": False}, spoken_message="Done.")
