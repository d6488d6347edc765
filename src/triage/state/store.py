"""SQLite-backed triage session store.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after writes.  Two mechanisms keep concurrent workers
from interleaving commands on the same session:

- a lease (``acquire_lease`` / ``release_lease``) claimed with a conditional
  ``UPDATE`` before a command starts, and
- a ``version`` column checked on every ``save`` so a lost race is loud.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta

import structlog

from triage.domain.errors import SessionNotFoundError, StaleSessionError
from triage.domain.models import Session
from triage.domain.types import SessionStatus
from triage.state.serializers import (
    deserialize_queue,
    format_timestamp,
    parse_timestamp,
    serialize_queue,
)

logger = structlog.get_logger()


class SessionStore:
    """Persist and retrieve triage sessions in SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``triage_session`` table (see ``init_triage_tables``).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create(self, session: Session) -> None:
        """Insert a brand-new session row."""
        self._conn.execute(
            """
            INSERT INTO triage_session (
                id, account, status, queue_json, cursor, version,
                started_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.account,
                session.status.value,
                serialize_queue(session.queue),
                session.cursor,
                session.version,
                format_timestamp(session.started_at),
                format_timestamp(session.updated_at),
            ),
        )
        self._conn.commit()

    def save(self, session: Session, *, commit: bool = True) -> None:
        """Write status, cursor and queue back, conditional on the loaded version.

        On success ``session.version`` is bumped to match the stored row.  With
        ``commit=False`` the update joins the open transaction; the caller must
        then ``commit`` or ``rollback``.

        Raises:
            SessionNotFoundError: If the row has been deleted.
            StaleSessionError: If another writer saved a newer version first.
        """
        cursor = self._conn.execute(
            """
            UPDATE triage_session
               SET status = ?, queue_json = ?, cursor = ?, updated_at = ?,
                   version = version + 1
             WHERE id = ? AND version = ?
            """,
            (
                session.status.value,
                serialize_queue(session.queue),
                session.cursor,
                format_timestamp(session.updated_at),
                session.id,
                session.version,
            ),
        )
        if commit:
            self._conn.commit()

        if cursor.rowcount == 0:
            if not self.exists(session.id):
                raise SessionNotFoundError(session.id)
            logger.error(
                "stale_session_write",
                session_id=session.id,
                expected_version=session.version,
            )
            raise StaleSessionError(session.id, session.version)

        session.version += 1

    def commit(self) -> None:
        """Commit the open transaction (shared with the undo ledger's connection)."""
        self._conn.commit()

    def rollback(self) -> None:
        """Discard every uncommitted write on the shared connection."""
        self._conn.rollback()

    def delete(self, session_id: str) -> bool:
        """Delete a session (its undo entry cascades).

        Returns:
            True if a row was removed.
        """
        cursor = self._conn.execute("DELETE FROM triage_session WHERE id = ?", (session_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Lease
    # ------------------------------------------------------------------

    def acquire_lease(self, session_id: str, owner: str, now: datetime, ttl_seconds: float) -> bool:
        """Claim exclusive command rights on a session for *owner*.

        The claim succeeds when nobody holds the lease, when *owner* already
        holds it, or when the previous holder's lease has expired.

        Returns:
            True if the lease is now held by *owner*, False if another
            worker holds a live lease.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        now_str = format_timestamp(now)
        expires = format_timestamp(now + timedelta(seconds=ttl_seconds))
        cursor = self._conn.execute(
            """
            UPDATE triage_session
               SET lease_owner = ?, lease_expires_at = ?
             WHERE id = ?
               AND (lease_owner IS NULL OR lease_owner = ? OR lease_expires_at <= ?)
            """,
            (owner, expires, session_id, owner, now_str),
        )
        self._conn.commit()

        if cursor.rowcount == 0:
            if not self.exists(session_id):
                raise SessionNotFoundError(session_id)
            return False
        return True

    def release_lease(self, session_id: str, owner: str) -> None:
        """Drop the lease if *owner* still holds it."""
        self._conn.execute(
            """
            UPDATE triage_session
               SET lease_owner = NULL, lease_expires_at = NULL
             WHERE id = ? AND lease_owner = ?
            """,
            (session_id, owner),
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def exists(self, session_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM triage_session WHERE id = ?", (session_id,)
        ).fetchone()
        return row is not None

    def load(self, session_id: str) -> Session:
        """Load a session by id.

        Raises:
            SessionNotFoundError: If no such session exists.
        """
        row = self._conn.execute(
            """
            SELECT id, account, status, queue_json, cursor, version, started_at, updated_at
              FROM triage_session
             WHERE id = ?
            """,
            (session_id,),
        ).fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)

        return Session(
            id=row[0],
            account=row[1],
            status=SessionStatus(row[2]),
            queue=deserialize_queue(row[3]),
            cursor=row[4],
            version=row[5],
            started_at=parse_timestamp(row[6]),
            updated_at=parse_timestamp(row[7]),
        )

    def list_for_account(
        self, account: str, status: SessionStatus | None = None
    ) -> list[dict[str, str | int]]:
        """Summaries of an account's sessions, newest first.

        Returns:
            Dicts with ``id``, ``status``, ``cursor`` and ``updated_at``.
        """
        query = "SELECT id, status, cursor, updated_at FROM triage_session WHERE account = ?"
        params: list[str] = [account]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY updated_at DESC"

        rows = self._conn.execute(query, params).fetchall()
        return [
            {"id": r[0], "status": r[1], "cursor": r[2], "updated_at": r[3]} for r in rows
        ]
