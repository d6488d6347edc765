"""SQLite-backed single-depth undo ledger.

Each session owns at most one undo row (``undo_entry.session_id`` is the
primary key).  Recording a new action replaces whatever was there, so only
the newest action is ever reversible.  A row stops being usable once its
``expires_at`` passes; expired rows are ignored by lookups and removed by
``purge_expired``.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta

import structlog

from triage.domain.errors import NothingToUndoError
from triage.domain.models import UndoEntry
from triage.domain.types import ActionKind, MailboxOp, reverse_op_for
from triage.state.serializers import format_timestamp, parse_timestamp
from triage.state_machine.machine import Clock, SessionStateMachine, utc_now

logger = structlog.get_logger()

DEFAULT_UNDO_WINDOW_SECONDS = 15

ReverseCall = Callable[[MailboxOp, str], Awaitable[object]]


class UndoLedger:
    """Record reversible actions and apply the newest live one."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``undo_entry`` table (see ``init_triage_tables``).
            window_seconds: How long after creation an entry can be undone.
            clock: Time source for ``created_at`` and expiry checks.
        """
        self._conn = conn
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock

    def record(
        self,
        session_id: str,
        kind: ActionKind,
        target_canonical_id: str,
        reverse_op: MailboxOp | None = None,
        *,
        commit: bool = True,
    ) -> UndoEntry:
        """Store the undo record for a confirmed mutation, replacing any previous one.

        Call only after the backend has confirmed the forward action.

        Args:
            session_id: Owning session.
            kind: The action that was performed.
            target_canonical_id: The message it was performed on.
            reverse_op: Backend op that undoes it; derived from *kind* when omitted.
            commit: When False the write is left in the open transaction so the
                caller can commit it together with the session save.

        Returns:
            The stored entry.
        """
        now = self._clock()
        entry = UndoEntry(
            id=str(uuid.uuid4()),
            session_id=session_id,
            action_kind=kind,
            target_canonical_id=target_canonical_id,
            reverse_op=reverse_op or reverse_op_for(kind),
            created_at=now,
            expires_at=now + self._window,
        )
        self._conn.execute(
            """
            INSERT OR REPLACE INTO undo_entry (
                session_id, id, action_kind, target_canonical_id,
                reverse_op, created_at, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.session_id,
                entry.id,
                entry.action_kind.value,
                entry.target_canonical_id,
                entry.reverse_op.value,
                format_timestamp(entry.created_at),
                format_timestamp(entry.expires_at),
            ),
        )
        if commit:
            self._conn.commit()
        logger.debug(
            "undo_recorded",
            session_id=session_id,
            action=kind.value,
            canonical_id=target_canonical_id,
        )
        return entry

    def latest(self, session_id: str) -> UndoEntry | None:
        """Return the session's undo entry whether or not it has expired."""
        row = self._conn.execute(
            """
            SELECT id, session_id, action_kind, target_canonical_id,
                   reverse_op, created_at, expires_at
              FROM undo_entry
             WHERE session_id = ?
            """,
            (session_id,),
        ).fetchone()
        if row is None:
            return None
        return UndoEntry(
            id=row[0],
            session_id=row[1],
            action_kind=ActionKind(row[2]),
            target_canonical_id=row[3],
            reverse_op=MailboxOp(row[4]),
            created_at=parse_timestamp(row[5]),
            expires_at=parse_timestamp(row[6]),
        )

    def live_entry(self, session_id: str) -> UndoEntry | None:
        """Return the session's undo entry only while it is inside its window."""
        entry = self.latest(session_id)
        if entry is None or not entry.is_live(self._clock()):
            return None
        return entry

    def consume(self, entry: UndoEntry, *, commit: bool = True) -> bool:
        """Delete *entry* if it is still the session's current record."""
        cursor = self._conn.execute(
            "DELETE FROM undo_entry WHERE session_id = ? AND id = ?",
            (entry.session_id, entry.id),
        )
        if commit:
            self._conn.commit()
        return cursor.rowcount > 0

    async def undo(
        self, machine: SessionStateMachine, reverse: ReverseCall, *, commit: bool = True
    ) -> UndoEntry:
        """Reverse the newest live action for the machine's session.

        The backend reversal is awaited first; only when it succeeds is the
        entry consumed and the cursor rewound to the reversed item.

        Args:
            machine: The session's state machine (cursor is rewound on success).
            reverse: Coroutine function invoked as ``reverse(op, canonical_id)``.
            commit: Passed to ``consume``.

        Returns:
            The consumed entry.

        Raises:
            NothingToUndoError: If there is no live entry.  Nothing changes.
            Exception: Whatever *reverse* raises; the entry is left intact so
                the undo can be retried within the original window.
        """
        session_id = machine.session.id
        entry = self.live_entry(session_id)
        if entry is None:
            raise NothingToUndoError(f"Nothing to undo for session {session_id}")

        await reverse(entry.reverse_op, entry.target_canonical_id)

        self.consume(entry, commit=commit)
        machine.jump_to(entry.target_canonical_id)
        logger.info(
            "undo_applied",
            session_id=session_id,
            action=entry.action_kind.value,
            canonical_id=entry.target_canonical_id,
            cursor=machine.cursor,
        )
        return entry

    def purge_expired(self) -> int:
        """Delete every expired entry.  Returns the number removed."""
        cursor = self._conn.execute(
            "DELETE FROM undo_entry WHERE expires_at <= ?",
            (format_timestamp(self._clock()),),
        )
        self._conn.commit()
        return cursor.rowcount
