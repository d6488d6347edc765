"""SessionStateMachine: status transitions plus the cursor over a session's queue."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from triage.domain.errors import CursorOutOfBoundsError, InvalidTransitionError
from triage.domain.models import QueueItem, Session
from triage.domain.types import SessionStatus
from triage.state_machine.transitions import TERMINAL_STATES, TRANSITIONS, SessionEvent

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(tz=UTC)


class SessionStateMachine:
    """Finite state machine governing one triage session.

    Owns every mutation of the wrapped ``Session``: status transitions are
    validated against the transition map, and the cursor only moves forward
    through ``advance`` or backward through an explicit ``jump_to``.

    Usage::

        sm = SessionStateMachine.create("me@example.com", queue)
        sm.current()      # -> first QueueItem
        sm.advance()      # -> second QueueItem (or None at the end)
        sm.stop()         # -> PAUSED
    """

    def __init__(self, session: Session, clock: Clock = utc_now) -> None:
        self._session = session
        self._clock = clock
        self._history: list[tuple[SessionStatus, str, SessionStatus]] = []

    @classmethod
    def create(
        cls,
        account: str,
        queue: list[QueueItem],
        *,
        session_id: str | None = None,
        clock: Clock = utc_now,
    ) -> SessionStateMachine:
        """Start a new session at cursor 0 in ACTIVE status.

        Args:
            account: The mailbox account being triaged.
            queue: The reconciled, dense queue.
            session_id: Explicit id; a UUID4 is generated when omitted.
            clock: Time source for ``started_at``/``updated_at``.

        Returns:
            A machine wrapping the new session.
        """
        now = clock()
        session = Session(
            id=session_id or str(uuid.uuid4()),
            account=account,
            status=SessionStatus.ACTIVE,
            queue=queue,
            cursor=0,
            started_at=now,
            updated_at=now,
        )
        return cls(session, clock=clock)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def cursor(self) -> int:
        return self._session.cursor

    @property
    def is_terminal(self) -> bool:
        return self._session.status in TERMINAL_STATES

    @property
    def is_exhausted(self) -> bool:
        """True when the cursor sits past the last item."""
        return self._session.cursor >= len(self._session.queue)

    @property
    def history(self) -> list[tuple[SessionStatus, str, SessionStatus]]:
        """Return a copy of the ``(from, event, to)`` transitions made by this machine."""
        return list(self._history)

    def trigger(self, event: str) -> SessionStatus:
        """Apply a status event.

        Raises:
            InvalidTransitionError: If the event is not allowed from the
                current status.
        """
        key = (self._session.status, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(self._session.status, event)

        old_status = self._session.status
        new_status = TRANSITIONS[key]
        self._history.append((old_status, event, new_status))
        self._session.status = new_status
        self._touch()
        logger.debug(
            "session_transition",
            session_id=self._session.id,
            from_status=old_status.value,
            event=event,
            to_status=new_status.value,
        )
        return new_status

    # ------------------------------------------------------------------
    # Cursor operations
    # ------------------------------------------------------------------

    def current(self) -> QueueItem | None:
        """Return the item under the cursor, or None when the queue is exhausted."""
        if self.is_exhausted:
            return None
        return self._session.queue[self._session.cursor]

    def advance(self) -> QueueItem | None:
        """Move the cursor forward by one and return the new current item.

        Reaching the end of the queue transitions ACTIVE -> COMPLETED.

        Raises:
            InvalidTransitionError: If the session is not ACTIVE.
            CursorOutOfBoundsError: If the cursor is already past the end.
        """
        if self._session.status != SessionStatus.ACTIVE:
            raise InvalidTransitionError(self._session.status, "advance")
        if self.is_exhausted:
            logger.error(
                "advance_past_end",
                session_id=self._session.id,
                cursor=self._session.cursor,
                total=len(self._session.queue),
            )
            raise CursorOutOfBoundsError(self._session.cursor + 1, len(self._session.queue))

        self._session.cursor += 1
        self._touch()
        if self.is_exhausted:
            self.trigger(SessionEvent.EXHAUST)
        return self.current()

    def jump_to(self, canonical_id: str) -> bool:
        """Rewind the cursor to the item with *canonical_id*.

        Used only by undo.  A session that completed by exhausting its queue
        is reopened so that COMPLETED keeps meaning ``cursor == len(queue)``.

        Returns:
            True if the item was found and the cursor moved, False otherwise
            (no state change).

        Raises:
            InvalidTransitionError: If the session is PAUSED, or COMPLETED
                by an explicit end with items left.
        """
        index = next(
            (i for i, item in enumerate(self._session.queue) if item.canonical_id == canonical_id),
            None,
        )
        if index is None:
            logger.info(
                "jump_target_not_in_queue",
                session_id=self._session.id,
                canonical_id=canonical_id,
            )
            return False

        if self._session.status == SessionStatus.COMPLETED:
            if not self.is_exhausted:
                raise InvalidTransitionError(self._session.status, SessionEvent.REOPEN)
            self.trigger(SessionEvent.REOPEN)
        elif self._session.status != SessionStatus.ACTIVE:
            raise InvalidTransitionError(self._session.status, "jump_to")

        self._session.cursor = index
        self._touch()
        return True

    # ------------------------------------------------------------------
    # Status operations
    # ------------------------------------------------------------------

    def stop(self) -> SessionStatus:
        """Pause an ACTIVE session."""
        return self.trigger(SessionEvent.PAUSE)

    def resume(self) -> SessionStatus:
        """Return a PAUSED session to ACTIVE; a no-op for any other status."""
        if self._session.status == SessionStatus.PAUSED:
            return self.trigger(SessionEvent.RESUME)
        return self._session.status

    def end(self) -> SessionStatus:
        """Force COMPLETED regardless of cursor.  Idempotent once completed."""
        if self._session.status == SessionStatus.COMPLETED:
            return self._session.status
        return self.trigger(SessionEvent.END)

    def _touch(self) -> None:
        self._session.updated_at = self._clock()
