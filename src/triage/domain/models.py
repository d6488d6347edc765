"""Pydantic v2 models for the triage domain.

Wire-facing models serialize with camelCase aliases (``canonicalId``,
``externalId``) and accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from triage.domain.errors import CursorOutOfBoundsError, QueueInvariantError
from triage.domain.types import ActionKind, MailboxOp, MatchMethod, SessionStatus

_WIRE = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ExternalObservation(BaseModel):
    """One entry from the externally scraped inbox ordering."""

    model_config = _WIRE

    position: int
    sender: str = ""
    subject: str = ""
    timestamp: str = ""
    external_id: str = ""  # may be empty when the scraper cannot see the backend id
    raw_text: str = ""


class CanonicalMessage(BaseModel):
    """Authoritative representation of a message, keyed by its backend id."""

    model_config = _WIRE

    id: str
    subject: str = ""
    sender: str = ""
    sender_address: str = ""
    snippet: str = ""
    received_at: str = ""  # ISO 8601


class MappingResult(BaseModel):
    """Outcome of matching a single observation against the canonical set."""

    model_config = _WIRE

    position: int
    matched: CanonicalMessage | None = None
    method: MatchMethod = MatchMethod.NONE
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class QueueItem(BaseModel):
    """A single entry in a session's triage queue."""

    model_config = _WIRE

    position: int
    canonical_id: str
    subject: str = ""
    sender: str = ""
    snippet: str = ""


class EmailContent(BaseModel):
    """Full content of a message as fetched from the backend for announcement."""

    model_config = _WIRE

    id: str
    sender: str = ""
    subject: str = ""
    snippet: str = ""
    body: str = ""


def validate_queue(queue: list[QueueItem]) -> list[QueueItem]:
    """Check that positions are dense and 0-based and canonical ids are unique.

    Raises:
        QueueInvariantError: On any violation.  This is deliberately not a
            ``ValueError`` so pydantic does not fold it into a validation error.
    """
    positions = [item.position for item in queue]
    if positions != list(range(len(queue))):
        raise QueueInvariantError(f"Queue positions must be 0..{len(queue) - 1}, got {positions}")

    seen: set[str] = set()
    for item in queue:
        if item.canonical_id in seen:
            raise QueueInvariantError(f"Canonical id appears twice in queue: {item.canonical_id}")
        seen.add(item.canonical_id)
    return queue


class Session(BaseModel):
    """One triage run: an ordered queue, a cursor into it, and a status.

    ``version`` is bumped by the store on every successful write and is used
    for conditional updates; it is not part of the public payload.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    account: str
    status: SessionStatus = SessionStatus.ACTIVE
    queue: list[QueueItem] = Field(default_factory=list)
    cursor: int = 0
    started_at: datetime
    updated_at: datetime
    version: int = Field(default=0, exclude=True)

    @field_validator("queue")
    @classmethod
    def queue_must_be_dense_and_unique(cls, v: list[QueueItem]) -> list[QueueItem]:
        """Enforce queue invariants on construction."""
        return validate_queue(v)

    @model_validator(mode="after")
    def cursor_must_be_in_bounds(self) -> Session:
        """Ensure ``0 <= cursor <= len(queue)``."""
        if not 0 <= self.cursor <= len(self.queue):
            raise CursorOutOfBoundsError(self.cursor, len(self.queue))
        return self

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def remaining(self) -> int:
        return len(self.queue) - self.cursor


class UndoEntry(BaseModel):
    """A reversible-action record that expires a fixed window after creation."""

    model_config = _WIRE

    id: str
    session_id: str
    action_kind: ActionKind
    target_canonical_id: str
    reverse_op: MailboxOp
    created_at: datetime
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        """Return True while *now* is strictly before ``expires_at``."""
        return self.expires_at > now
