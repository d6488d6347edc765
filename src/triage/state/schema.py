"""SQLite schema for triage session and undo-entry persistence."""

from __future__ import annotations

import sqlite3
from pathlib import Path


def init_db(db_path: Path | str) -> sqlite3.Connection:
    """Open the triage database with WAL mode and create tables.

    The connection is opened with ``check_same_thread=False`` because
    FastAPI handlers and the sweep task run on different threads than the
    one that created it.

    Args:
        db_path: Path to the SQLite database file (``":memory:"`` in tests).

    Returns:
        An open sqlite3.Connection with all tables created.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    init_triage_tables(conn)
    return conn


def init_triage_tables(conn: sqlite3.Connection) -> None:
    """Create the triage_session and undo_entry tables if they do not exist.

    ``undo_entry`` is keyed by ``session_id`` so each session holds at most
    one undo record; recording a new action replaces the previous row.
    Deleting a session cascades to its undo entry.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("PRAGMA foreign_keys=ON")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS triage_session (
            id TEXT PRIMARY KEY,
            account TEXT NOT NULL,
            status TEXT NOT NULL CHECK (status IN ('active', 'paused', 'completed')),
            queue_json TEXT NOT NULL DEFAULT '[]',
            cursor INTEGER NOT NULL DEFAULT 0,
            version INTEGER NOT NULL DEFAULT 0,
            lease_owner TEXT,
            lease_expires_at TEXT,
            started_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_triage_session_account_status "
        "ON triage_session (account, status)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS undo_entry (
            session_id TEXT PRIMARY KEY
                REFERENCES triage_session (id) ON DELETE CASCADE,
            id TEXT NOT NULL,
            action_kind TEXT NOT NULL CHECK (action_kind IN ('archive', 'delete', 'star')),
            target_canonical_id TEXT NOT NULL,
            reverse_op TEXT NOT NULL,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_undo_entry_expires ON undo_entry (expires_at)")

    conn.commit()


def close_db(conn: sqlite3.Connection) -> None:
    """Close the triage database connection."""
    conn.close()
