"""
In-process TTL cache for derived aggregation values.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any


class TTLCache:
    """
    Thread-safe key/value cache whose entries expire ``ttl_seconds`` after
    they are written. A TTL of zero disables caching.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(0.0, ttl_seconds)
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        if self._ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl_seconds, value)

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)


def national_average_key(statistic_id: int, year: int) -> tuple[str, int, int]:
    return ("national_average", statistic_id, year)


def evict_national_averages(cache: TTLCache, keys: set[tuple[int, int]]) -> int:
    """
    Drop cached national averages for the given ``(statistic_id, year)`` pairs.
    """

    evicted = 0
    for statistic_id, year in keys:
        if cache.delete(national_average_key(statistic_id, year)):
            evicted += 1
    return evicted
