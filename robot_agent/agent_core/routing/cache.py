"""Short-lived result cache for fast-path system queries.

Constantly changing data (cpu, memory) is cached for about a second so bursts
of identical queries share one measurement. Static or instantaneous data
(time, path, env) is never cached.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

QUERY_TTL_SECONDS: Dict[str, float] = {
    "cpu": 1.0,
    "memory": 1.0,
    "process": 2.0,
    "disk": 5.0,
    "network": 5.0,
    "time": 0.0,
    "path": 0.0,
    "env": 0.0,
}

DEFAULT_TTL_SECONDS = 5.0


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl: float


class TTLCache:
    """Per-key expiring cache.

    Attributes:
        max_size: Maximum number of entries (0 = unlimited). The oldest entry
            is evicted first when full.
    """

    def __init__(
        self,
        *,
        max_size: int = 0,
        ttls: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._ttls = dict(QUERY_TTL_SECONDS if ttls is None else ttls)
        self._clock = clock

    def _live(self, key: str) -> Optional[CacheEntry[Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > entry.ttl:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Any:
        """Return the cached value, or ``None`` when missing or expired."""
        entry = self._live(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Cache key, usually the query type.
            value: Value to store.
            ttl: Lifetime in seconds. Defaults to ``get_ttl(key)``. A TTL of zero
                or less disables caching for the call.
        """
        ttl = self.get_ttl(key) if ttl is None else ttl
        if ttl <= 0:
            return
        if self._max_size > 0 and key not in self._entries and len(self._entries) >= self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)

    def has(self, key: str) -> bool:
        return self._live(key) is not None

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def get_ttl(self, key: str) -> float:
        return self._ttls.get(key, DEFAULT_TTL_SECONDS)
