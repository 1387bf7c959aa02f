"""
Small in-process TTL cache for slow-changing lookups (e.g. role ids).

Entries keep their value and the time they were stored; a read after the
TTL has elapsed is a miss. Writers that change the underlying rows must
call ``invalidate``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

import cachetools

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    key: Hashable
    value: V
    stored_at: float
    ttl_seconds: float


def _expires_at(key: Hashable, entry: CacheEntry, now: float) -> float:
    return entry.stored_at + entry.ttl_seconds


class TTLCache(Generic[V]):
    def __init__(
        self,
        ttl_seconds: float,
        *,
        maxsize: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: cachetools.TLRUCache = cachetools.TLRUCache(
            maxsize=maxsize, ttu=_expires_at, timer=clock
        )

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        return None if entry is None else entry.value

    def set(self, key: Hashable, value: V, ttl_seconds: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            stored_at=self._clock(),
            ttl_seconds=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
        )

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when no key is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Optional[V]]]) -> Optional[V]:
        """Return the cached value or await ``loader``; ``None`` results are not cached."""
        value = self.get(key)
        if value is not None:
            return value
        value = await loader()
        if value is not None:
            self.set(key, value)
        return value

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None
