"""Tests for UndoLedger: single-slot recording, the 15-second window, and reversal."""

from __future__ import annotations

import asyncio
import sqlite3
from unittest.mock import AsyncMock

import pytest

from triage.domain.errors import NothingToUndoError
from triage.domain.models import QueueItem
from triage.domain.types import ActionKind, MailboxOp, SessionStatus
from triage.state.store import SessionStore
from triage.state_machine.machine import SessionStateMachine
from triage.undo.ledger import UndoLedger


@pytest.fixture
def machine(store: SessionStore, queue: list[QueueItem], clock) -> SessionStateMachine:
    sm = SessionStateMachine.create("me@example.com", queue, session_id="s1", clock=clock)
    store.create(sm.session)
    return sm


class TestRecord:
    def test_sets_window_and_reverse_op(self, ledger: UndoLedger, machine, clock):
        entry = ledger.record("s1", ActionKind.DELETE, "t1")

        assert entry.reverse_op == MailboxOp.UNDELETE
        assert entry.created_at == clock.now
        assert (entry.expires_at - entry.created_at).total_seconds() == 15

    def test_newer_entry_replaces_older(self, conn: sqlite3.Connection, ledger: UndoLedger, machine):
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        ledger.record("s1", ActionKind.STAR, "t2")

        latest = ledger.latest("s1")
        assert latest is not None
        assert latest.action_kind == ActionKind.STAR
        assert latest.target_canonical_id == "t2"
        assert conn.execute("SELECT COUNT(*) FROM undo_entry").fetchone()[0] == 1

    def test_explicit_reverse_op_is_kept(self, ledger: UndoLedger, machine):
        entry = ledger.record("s1", ActionKind.ARCHIVE, "t1", reverse_op=MailboxOp.UNARCHIVE)
        assert ledger.latest("s1") == entry


class TestLiveEntry:
    def test_live_inside_window(self, ledger: UndoLedger, machine, clock):
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        clock.advance(14.9)
        assert ledger.live_entry("s1") is not None

    def test_expired_at_window_end(self, ledger: UndoLedger, machine, clock):
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        clock.advance(15)
        assert ledger.live_entry("s1") is None
        assert ledger.latest("s1") is not None

    def test_none_recorded(self, ledger: UndoLedger, machine):
        assert ledger.live_entry("s1") is None


class TestUndo:
    def test_reverses_and_rewinds(self, ledger: UndoLedger, machine: SessionStateMachine):
        machine.advance()
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        reverse = AsyncMock()

        entry = asyncio.run(ledger.undo(machine, reverse))

        reverse.assert_awaited_once_with(MailboxOp.UNARCHIVE, "t1")
        assert entry.action_kind == ActionKind.ARCHIVE
        assert machine.cursor == 0
        assert ledger.latest("s1") is None

    def test_nothing_to_undo(self, ledger: UndoLedger, machine: SessionStateMachine):
        reverse = AsyncMock()
        with pytest.raises(NothingToUndoError):
            asyncio.run(ledger.undo(machine, reverse))
        reverse.assert_not_awaited()

    def test_expired_entry_not_undone(self, ledger: UndoLedger, machine: SessionStateMachine, clock):
        machine.advance()
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        clock.advance(16)

        with pytest.raises(NothingToUndoError):
            asyncio.run(ledger.undo(machine, AsyncMock()))
        assert machine.cursor == 1

    def test_failed_reverse_keeps_entry(self, ledger: UndoLedger, machine: SessionStateMachine):
        machine.advance()
        ledger.record("s1", ActionKind.STAR, "t1")
        reverse = AsyncMock(side_effect=RuntimeError("backend down"))

        with pytest.raises(RuntimeError):
            asyncio.run(ledger.undo(machine, reverse))

        assert machine.cursor == 1
        assert ledger.live_entry("s1") is not None

    def test_undo_of_last_item_reopens_session(
        self, ledger: UndoLedger, machine: SessionStateMachine
    ):
        for _ in range(3):
            machine.advance()
        ledger.record("s1", ActionKind.ARCHIVE, "t3")

        asyncio.run(ledger.undo(machine, AsyncMock()))

        assert machine.status == SessionStatus.ACTIVE
        assert machine.cursor == 2


class TestPurge:
    def test_removes_only_expired(self, store: SessionStore, ledger: UndoLedger, machine, queue, clock):
        other = SessionStateMachine.create("me@example.com", queue, session_id="s2", clock=clock)
        store.create(other.session)
        ledger.record("s1", ActionKind.ARCHIVE, "t1")
        clock.advance(10)
        ledger.record("s2", ActionKind.ARCHIVE, "t1")
        clock.advance(6)

        assert ledger.purge_expired() == 1
        assert ledger.latest("s1") is None
        assert ledger.latest("s2") is not None
