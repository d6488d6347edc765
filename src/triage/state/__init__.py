"""Triage state persistence package.

Provides SQLite-backed storage for sessions, serialization helpers, and an
in-process keyed store with idle expiry.
"""

from triage.state.expiring import ExpiringStore
from triage.state.schema import close_db, init_db, init_triage_tables
from triage.state.serializers import (
    deserialize_queue,
    format_timestamp,
    parse_timestamp,
    serialize_queue,
)
from triage.state.store import SessionStore

__all__ = [
    "ExpiringStore",
    "SessionStore",
    "close_db",
    "deserialize_queue",
    "format_timestamp",
    "init_db",
    "init_triage_tables",
    "parse_timestamp",
    "serialize_queue",
]
