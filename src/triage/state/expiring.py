"""In-process keyed store whose entries expire after a period of inactivity.

Replaces module-level dict caches: callers inject an ``ExpiringStore`` and
are responsible for calling ``sweep`` periodically (the application runs a
background sweep task).  Reads never expire entries on their own.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ExpiringStore(Generic[K, V]):
    """Map keys to values, tracking when each key was last touched.

    Args:
        ttl_seconds: Idle time after which ``sweep`` evicts an entry.
        clock: Monotonic time source in seconds.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: K) -> V | None:
        """Return the value for *key* and mark it as recently used."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries[key] = (entry[0], self._clock())
        return entry[0]

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        """Return the value for *key*, creating it with *factory* if absent."""
        value = self.get(key)
        if value is None:
            value = factory()
            self.put(key, value)
        return value

    def put(self, key: K, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def touch(self, key: K) -> bool:
        """Refresh *key*'s last-used time.  Returns False if absent."""
        return self.get(key) is not None

    def pop(self, key: K) -> V | None:
        entry = self._entries.pop(key, None)
        return entry[0] if entry is not None else None

    def sweep(self, keep: Callable[[V], bool] | None = None) -> list[K]:
        """Evict entries idle longer than the TTL.

        Args:
            keep: Optional predicate; entries for which it returns True are
                kept even when idle (e.g. a lock that is currently held).

        Returns:
            The evicted keys.
        """
        cutoff = self._clock() - self._ttl
        evicted = [
            key
            for key, (value, last_used) in self._entries.items()
            if last_used <= cutoff and not (keep is not None and keep(value))
        ]
        for key in evicted:
            del self._entries[key]
        return evicted
