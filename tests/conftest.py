"""Shared pytest fixtures for the voice triage test suite."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from triage.dispatch.dispatcher import TriageDispatcher
from triage.dispatch.locks import SessionLocks
from triage.domain.models import CanonicalMessage, EmailContent, QueueItem
from triage.domain.types import MailboxOp
from triage.state.schema import init_triage_tables
from triage.state.store import SessionStore
from triage.undo.ledger import UndoLedger


class FakeClock:
    """Controllable UTC clock; call it to read the time, ``advance`` to move it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeMailbox:
    """In-memory message backend recording every mutation it is asked for."""

    def __init__(
        self,
        canonical: list[CanonicalMessage] | None = None,
        contents: dict[str, EmailContent] | None = None,
    ) -> None:
        self.canonical = list(canonical or [])
        self.contents = dict(contents or {})
        self.calls: list[tuple[MailboxOp, str]] = []
        self.fail_ops: set[MailboxOp] = set()
        self.fail_fetch = False
        self.fail_list = False

    async def list_canonical(self, account: str) -> list[CanonicalMessage]:
        if self.fail_list:
            raise RuntimeError("inbox listing failed")
        return list(self.canonical)

    async def fetch_content(self, account: str, message_id: str) -> EmailContent:
        if self.fail_fetch:
            raise RuntimeError("content fetch failed")
        return self.contents.get(message_id, EmailContent(id=message_id))

    async def mutate(self, account: str, op: MailboxOp, message_id: str) -> None:
        if op in self.fail_ops:
            raise RuntimeError(f"{op} failed")
        self.calls.append((op, message_id))


class FakeOrdering:
    """Ordering source returning a fixed observation list, or raising."""

    def __init__(self, observations: list | None = None, error: Exception | None = None) -> None:
        self.observations = list(observations or [])
        self.error = error
        self.calls: list[str] = []

    async def scrape_order(self, account: str) -> list:
        self.calls.append(account)
        if self.error is not None:
            raise self.error
        return list(self.observations)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def conn() -> sqlite3.Connection:
    """In-memory SQLite connection with the triage tables created."""
    connection = sqlite3.connect(":memory:", check_same_thread=False)
    init_triage_tables(connection)
    return connection


@pytest.fixture
def store(conn: sqlite3.Connection) -> SessionStore:
    return SessionStore(conn)


@pytest.fixture
def ledger(conn: sqlite3.Connection, clock: FakeClock) -> UndoLedger:
    return UndoLedger(conn, window_seconds=15, clock=clock)


@pytest.fixture
def canonical_messages() -> list[CanonicalMessage]:
    """Three inbox messages in backend (newest first) order."""
    return [
        CanonicalMessage(
            id="t1",
            subject="Q1 Report",
            sender="John Doe <j@x.com>",
            sender_address="j@x.com",
            snippet="Numbers attached",
        ),
        CanonicalMessage(
            id="t2",
            subject="Lunch on Friday?",
            sender="Ana <ana@example.com>",
            sender_address="ana@example.com",
            snippet="Thinking tacos",
        ),
        CanonicalMessage(
            id="t3",
            subject="Your invoice is ready",
            sender="Billing <billing@vendor.io>",
            sender_address="billing@vendor.io",
            snippet="Invoice #4411",
        ),
    ]


@pytest.fixture
def queue() -> list[QueueItem]:
    return [
        QueueItem(position=0, canonical_id="t1", subject="Q1 Report", sender="John Doe"),
        QueueItem(position=1, canonical_id="t2", subject="Lunch on Friday?", sender="Ana"),
        QueueItem(position=2, canonical_id="t3", subject="Your invoice is ready", sender="Billing"),
    ]


@pytest.fixture
def mailbox(canonical_messages: list[CanonicalMessage]) -> FakeMailbox:
    return FakeMailbox(canonical_messages)


@pytest.fixture
def dispatcher(
    store: SessionStore,
    ledger: UndoLedger,
    mailbox: FakeMailbox,
    clock: FakeClock,
) -> TriageDispatcher:
    return TriageDispatcher(
        store,
        ledger,
        mailbox,
        locks=SessionLocks(),
        worker_id="test-worker",
        clock=clock,
    )
