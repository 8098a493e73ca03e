"""
Single-flight completion cache.

``PromptCache`` stores completion responses by content hash of the request.
Concurrent callers asking for the same key share one computation: the first
caller computes while holding the key's lock, the others wait on that lock
and then read the stored value. Failed computations are not stored, so the
next caller retries.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .hashing import cache_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    computations: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "computations": self.computations,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate,
        }


class PromptCache(Generic[T]):
    """
    Key-locked in-memory cache with LRU eviction.

    Example:
        ```python
        cache = PromptCache(max_entries=1024)
        response = await cache.get_or_compute(key, lambda: model.complete(request))
        ```
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.stats = CacheStats()
        self._store: OrderedDict[str, T] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @staticmethod
    def key_for(namespace: str, payload: dict[str, Any]) -> str:
        return cache_key(namespace, payload)

    def get(self, key: str) -> T | None:
        value = self._store.get(key)
        if value is not None:
            self._store.move_to_end(key)
        return value

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def put(self, key: str, value: T) -> None:
        self._store[key] = value
        self._store.move_to_end(key)
        if self.max_entries is not None:
            while len(self._store) > self.max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted[:12])
                self.stats.evictions += 1

    def clear(self) -> None:
        self._store.clear()

    async def get_or_compute(self, key: str, factory: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """
        Return ``(value, hit)`` for ``key``, computing it at most once at a time.

        Exceptions from ``factory`` propagate to the computing caller; waiters
        then try again themselves.
        """
        cached = self.get(key)
        if cached is not None:
            self.stats.hits += 1
            return cached, True

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                cached = self.get(key)
                if cached is not None:
                    self.stats.hits += 1
                    return cached, True
                self.stats.misses += 1
                self.stats.computations += 1
                value = await factory()
                self.put(key, value)
                return value, False
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)


__all__ = ["CacheStats", "PromptCache"]
