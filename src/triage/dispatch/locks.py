"""Per-session asyncio locks for serializing commands inside one process."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from triage.state.expiring import ExpiringStore


class SessionLocks:
    """Hand out one ``asyncio.Lock`` per session id.

    Locks idle for longer than *ttl_seconds* are dropped by ``sweep``; a lock
    that is currently held is never dropped.
    """

    def __init__(self, ttl_seconds: float = 1800, clock: Callable[[], float] = time.monotonic) -> None:
        self._locks: ExpiringStore[str, asyncio.Lock] = ExpiringStore(ttl_seconds, clock=clock)

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks.get_or_create(session_id, asyncio.Lock)

    def discard(self, session_id: str) -> None:
        self._locks.pop(session_id)

    def sweep(self) -> list[str]:
        """Evict idle, unheld locks.  Returns the evicted session ids."""
        return self._locks.sweep(keep=lambda lock: lock.locked())
