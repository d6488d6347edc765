"""Serialization helpers for persisted triage state.

Timestamps are stored as fixed-width UTC strings with microseconds so that
SQLite string comparison orders them the same way as the datetimes they
encode (the lease query relies on this).
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import TypeAdapter

from triage.domain.models import QueueItem

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_QUEUE_ADAPTER: TypeAdapter[list[QueueItem]] = TypeAdapter(list[QueueItem])


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as a sortable UTC string."""
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a string produced by ``format_timestamp`` back to an aware datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def serialize_queue(queue: list[QueueItem]) -> str:
    """JSON-encode a queue using its wire (camelCase) field names."""
    return _QUEUE_ADAPTER.dump_json(queue, by_alias=True).decode()


def deserialize_queue(json_str: str) -> list[QueueItem]:
    """Decode a queue produced by ``serialize_queue``."""
    return _QUEUE_ADAPTER.validate_json(json_str)
