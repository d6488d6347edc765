"""TriageDispatcher: the single entry point for voice commands.

Each command is resolved, run against a freshly loaded session under an
in-process lock plus a storage lease, and answered with a ``CommandResult``
whose data and spoken message describe the same outcome.  Session state is
written back only when a command succeeds, so a failed backend call leaves
both the session and the undo ledger as they were.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from triage.dispatch.commands import (
    ACTION_COMMANDS,
    READ_ONLY_COMMANDS,
    Command,
    CommandResult,
    parse_command,
)
from triage.dispatch.locks import SessionLocks
from triage.dispatch.messages import (
    ACTION_FAILED,
    END_OF_QUEUE,
    NO_CURRENT_EMAIL,
    NOTHING_TO_UNDO,
    SESSION_ENDED,
    action_message,
    current_email_message,
    end_session_message,
    remaining_message,
    skip_message,
    undo_message,
)
from triage.domain.errors import (
    InvalidCommandError,
    NothingToUndoError,
    SessionBusyError,
    TriageError,
)
from triage.domain.models import EmailContent, ExternalObservation, QueueItem
from triage.domain.types import ActionKind, MailboxOp, SessionStatus, forward_op
from triage.mailbox.ports import MessageSource, OrderingSource
from triage.observability.metrics import COMMANDS_TOTAL, SESSIONS_STARTED, UNDO_APPLIED
from triage.reconciler.matcher import (
    MappingStats,
    build_queue,
    mapping_stats,
    ordered_canonical_ids,
    queue_in_canonical_order,
    reconcile,
    unmatched_positions,
)
from triage.state.store import SessionStore
from triage.state_machine.machine import Clock, SessionStateMachine, utc_now
from triage.undo.ledger import UndoLedger

logger = structlog.get_logger()

DEFAULT_EXCERPT_CHARS = 500

Handler = Callable[[SessionStateMachine], Awaitable[CommandResult]]


class SessionStart(BaseModel):
    """Response payload for a newly started session."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    session_id: str
    queue_length: int
    first_item: QueueItem | None = None
    mapping_stats: MappingStats | None = None


def _item_payload(item: QueueItem | None) -> dict[str, Any] | None:
    return item.model_dump(by_alias=True) if item is not None else None


class TriageDispatcher:
    """Route commands to the session state machine, undo ledger and mailbox.

    Args:
        store: Session persistence.
        ledger: Undo ledger on the same connection as *store*, so its writes
            commit in the same transaction as the session save.
        mailbox: Message backend used for mutations and content.
        ordering: Optional scraped-ordering source; without it sessions follow
            the backend's own order.
        locks: Per-session in-process locks.
        worker_id: Identity used when claiming storage leases.
        lease_ttl_seconds: How long a claimed lease stays valid.
        excerpt_chars: Maximum body characters read out by ``getCurrent``.
        clock: Time source shared with the state machine.
    """

    def __init__(
        self,
        store: SessionStore,
        ledger: UndoLedger,
        mailbox: MessageSource,
        ordering: OrderingSource | None = None,
        locks: SessionLocks | None = None,
        *,
        worker_id: str | None = None,
        lease_ttl_seconds: float = 30,
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._mailbox = mailbox
        self._ordering = ordering
        self._locks = locks or SessionLocks()
        self._worker_id = worker_id or f"worker-{uuid.uuid4()}"
        self._lease_ttl = lease_ttl_seconds
        self._excerpt_chars = excerpt_chars
        self._clock = clock

        self._handlers: dict[Command, Handler] = {
            Command.ARCHIVE: self._archive,
            Command.DELETE: self._delete,
            Command.STAR: self._star,
            Command.SKIP: self._skip,
            Command.UNDO: self._undo,
            Command.QUERY_REMAINING: self._query_remaining,
            Command.END_SESSION: self._end_session,
            Command.GET_CURRENT: self._get_current,
        }
        missing = set(Command) - self._handlers.keys()
        if missing:
            raise RuntimeError(f"No handler registered for commands: {sorted(missing)}")

    @property
    def locks(self) -> SessionLocks:
        return self._locks

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_session(self, account: str, use_canonical_order: bool = False) -> SessionStart:
        """Build a queue for *account* and persist a new ACTIVE session.

        The canonical listing and the scraped ordering are fetched
        concurrently.  When the ordering source is missing, disabled by
        *use_canonical_order*, or fails, the queue follows the backend's order.

        Raises:
            Exception: Whatever the message backend raises while listing.
        """
        if self._ordering is None or use_canonical_order:
            canonical = await self._mailbox.list_canonical(account)
            observations = None
        else:
            canonical, observations = await asyncio.gather(
                self._mailbox.list_canonical(account),
                self._scrape_order(account),
            )

        stats: MappingStats | None = None
        if observations is None:
            queue = queue_in_canonical_order(canonical)
        else:
            results = reconcile(observations, canonical)
            queue = build_queue(ordered_canonical_ids(results), canonical)
            stats = mapping_stats(results)
            if stats.unmatched:
                logger.info(
                    "observations_unmatched",
                    account=account,
                    positions=unmatched_positions(results),
                )

        machine = SessionStateMachine.create(account, queue, clock=self._clock)
        self._store.create(machine.session)
        SESSIONS_STARTED.inc()
        logger.info(
            "session_started",
            session_id=machine.session.id,
            account=account,
            queue_length=len(queue),
            ordering="canonical" if observations is None else "scraped",
        )
        return SessionStart(
            session_id=machine.session.id,
            queue_length=len(queue),
            first_item=machine.current(),
            mapping_stats=stats,
        )

    async def _scrape_order(self, account: str) -> list[ExternalObservation] | None:
        assert self._ordering is not None
        try:
            return await self._ordering.scrape_order(account)
        except Exception:
            logger.warning("ordering_unavailable_falling_back", account=account, exc_info=True)
            return None

    def get_status(self, session_id: str) -> dict[str, Any]:
        """Return a read-only view of the session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = self._store.load(session_id)
        machine = SessionStateMachine(session, clock=self._clock)
        return {
            "sessionId": session.id,
            "account": session.account,
            "status": session.status.value,
            "cursor": session.cursor,
            "total": session.total,
            "processed": session.cursor,
            "remaining": session.remaining,
            "currentItem": _item_payload(machine.current()),
            "startedAt": session.started_at.isoformat(),
            "updatedAt": session.updated_at.isoformat(),
        }

    async def pause_session(self, session_id: str) -> dict[str, Any]:
        """Pause an ACTIVE session; PAUSED and COMPLETED sessions are left alone."""
        async with self._exclusive(session_id):
            session = self._store.load(session_id)
            machine = SessionStateMachine(session, clock=self._clock)
            if machine.status == SessionStatus.ACTIVE:
                machine.stop()
                self._store.save(session)
                logger.info("session_paused", session_id=session_id, cursor=session.cursor)
        return self.get_status(session_id)

    async def delete_session(self, session_id: str) -> bool:
        """Remove the session and its undo entry.  Returns False if it did not exist."""
        async with self._locks.lock_for(session_id):
            deleted = self._store.delete(session_id)
        self._locks.discard(session_id)
        if deleted:
            logger.info("session_deleted", session_id=session_id)
        return deleted

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def command(
        self,
        session_id: str,
        name: object,
        params: dict[str, Any] | None = None,
    ) -> CommandResult:
        """Run one command against a session.

        Args:
            session_id: Target session.
            name: Raw command name (see ``Command``).
            params: Optional parameters; no current command takes any.

        Returns:
            The command's result.  Recoverable conditions (end of queue,
            nothing to undo, a failed backend call) are reported as
            ``success=False`` results rather than raised.

        Raises:
            InvalidCommandError: If the command or its parameters are malformed.
            SessionNotFoundError: If the session does not exist.
            SessionBusyError: If another worker holds the session's lease.
        """
        try:
            command = parse_command(name)
        except InvalidCommandError:
            COMMANDS_TOTAL.labels(command="unknown", outcome="rejected").inc()
            logger.warning("unknown_command", session_id=session_id, command=str(name))
            raise
        if params is not None and not isinstance(params, dict):
            raise InvalidCommandError(command.value, "params must be an object")

        structlog.contextvars.bind_contextvars(session_id=session_id, command=command.value)
        try:
            async with self._exclusive(session_id):
                session = self._store.load(session_id)
                machine = SessionStateMachine(session, clock=self._clock)
                before = (session.status, session.cursor)

                if command not in READ_ONLY_COMMANDS:
                    machine.resume()

                # Ledger writes from the handler stay uncommitted until the
                # session save succeeds; both land in one transaction or neither.
                try:
                    result = await self._handlers[command](machine)
                    if result.success:
                        if (session.status, session.cursor) != before:
                            self._store.save(session, commit=False)
                        self._store.commit()
                    else:
                        self._store.rollback()
                except Exception:
                    self._store.rollback()
                    raise
        finally:
            structlog.contextvars.unbind_contextvars("session_id", "command")

        outcome = "success" if result.success else "declined"
        COMMANDS_TOTAL.labels(command=command.value, outcome=outcome).inc()
        logger.info(
            "command_dispatched",
            session_id=session_id,
            command=command.value,
            success=result.success,
            cursor=session.cursor,
            status=session.status.value,
        )
        return result

    @asynccontextmanager
    async def _exclusive(self, session_id: str) -> AsyncIterator[None]:
        """Hold the in-process lock and the storage lease for *session_id*."""
        async with self._locks.lock_for(session_id):
            if not self._store.acquire_lease(
                session_id, self._worker_id, self._clock(), self._lease_ttl
            ):
                logger.warning("session_busy", session_id=session_id, worker_id=self._worker_id)
                raise SessionBusyError(session_id)
            try:
                yield
            finally:
                self._store.release_lease(session_id, self._worker_id)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _archive(self, machine: SessionStateMachine) -> CommandResult:
        return await self._act(machine, ACTION_COMMANDS[Command.ARCHIVE])

    async def _delete(self, machine: SessionStateMachine) -> CommandResult:
        return await self._act(machine, ACTION_COMMANDS[Command.DELETE])

    async def _star(self, machine: SessionStateMachine) -> CommandResult:
        return await self._act(machine, ACTION_COMMANDS[Command.STAR])

    async def _act(self, machine: SessionStateMachine, kind: ActionKind) -> CommandResult:
        """Apply *kind* to the current item, record its undo, then advance."""
        session = machine.session
        item = machine.current()
        if item is None:
            return CommandResult.of(False, END_OF_QUEUE, {"reason": "end_of_queue"})
        if machine.is_terminal:
            return CommandResult.of(False, SESSION_ENDED, {"reason": "session_ended"})

        try:
            await self._mailbox.mutate(session.account, forward_op(kind), item.canonical_id)
        except Exception:
            logger.exception(
                "mailbox_action_failed",
                session_id=session.id,
                action=kind.value,
                canonical_id=item.canonical_id,
            )
            return CommandResult.of(
                False,
                ACTION_FAILED,
                {"reason": "backend_error", "action": kind.value, "canonicalId": item.canonical_id},
            )

        self._ledger.record(session.id, kind, item.canonical_id, commit=False)
        next_item = machine.advance()
        return CommandResult.of(
            True,
            action_message(kind, next_item),
            {
                "action": kind.value,
                "canonicalId": item.canonical_id,
                "nextItem": _item_payload(next_item),
                "remaining": session.remaining,
            },
        )

    async def _skip(self, machine: SessionStateMachine) -> CommandResult:
        item = machine.current()
        if item is None:
            return CommandResult.of(False, END_OF_QUEUE, {"reason": "end_of_queue"})
        if machine.is_terminal:
            return CommandResult.of(False, SESSION_ENDED, {"reason": "session_ended"})

        next_item = machine.advance()
        return CommandResult.of(
            True,
            skip_message(next_item),
            {
                "action": "skip",
                "canonicalId": item.canonical_id,
                "nextItem": _item_payload(next_item),
                "remaining": machine.session.remaining,
            },
        )

    async def _undo(self, machine: SessionStateMachine) -> CommandResult:
        session = machine.session
        if machine.is_terminal and not machine.is_exhausted:
            return CommandResult.of(False, SESSION_ENDED, {"reason": "session_ended"})

        async def reverse(op: MailboxOp, canonical_id: str) -> None:
            await self._mailbox.mutate(session.account, op, canonical_id)

        try:
            entry = await self._ledger.undo(machine, reverse, commit=False)
        except NothingToUndoError:
            return CommandResult.of(False, NOTHING_TO_UNDO, {"reason": "nothing_to_undo"})
        except TriageError:
            raise
        except Exception:
            logger.exception("undo_reverse_failed", session_id=session.id)
            return CommandResult.of(False, ACTION_FAILED, {"reason": "backend_error"})

        UNDO_APPLIED.inc()
        return CommandResult.of(
            True,
            undo_message(entry.action_kind),
            {
                "undoneAction": entry.action_kind.value,
                "canonicalId": entry.target_canonical_id,
                "currentItem": _item_payload(machine.current()),
                "remaining": session.remaining,
            },
        )

    async def _query_remaining(self, machine: SessionStateMachine) -> CommandResult:
        session = machine.session
        return CommandResult.of(
            True,
            remaining_message(session.remaining, session.total),
            {
                "remaining": session.remaining,
                "total": session.total,
                "position": session.cursor + 1,
            },
        )

    async def _end_session(self, machine: SessionStateMachine) -> CommandResult:
        session = machine.session
        processed, remaining = session.cursor, session.remaining
        machine.end()
        return CommandResult.of(
            True,
            end_session_message(processed, remaining),
            {"processed": processed, "remaining": remaining, "status": session.status.value},
        )

    async def _get_current(self, machine: SessionStateMachine) -> CommandResult:
        """Announce the current item, falling back to cached queue fields on fetch failure."""
        session = machine.session
        item = machine.current()
        if item is None:
            return CommandResult.of(False, NO_CURRENT_EMAIL, {"email": None})

        try:
            content = await self._mailbox.fetch_content(session.account, item.canonical_id)
        except Exception:
            logger.warning(
                "content_fetch_failed",
                session_id=session.id,
                canonical_id=item.canonical_id,
                exc_info=True,
            )
            content = EmailContent(
                id=item.canonical_id,
                sender=item.sender,
                subject=item.subject,
                snippet=item.snippet,
            )

        excerpt = (content.body or content.snippet)[: self._excerpt_chars]
        email = {
            "canonicalId": item.canonical_id,
            "position": item.position,
            "sender": content.sender or item.sender,
            "subject": content.subject or item.subject,
            "excerpt": excerpt,
        }
        return CommandResult.of(
            True,
            current_email_message(email["sender"], email["subject"], excerpt),
            {"email": email},
        )
