"""In-process TTL cache for per-user analysis results."""

from __future__ import annotations

import logging
import threading
import time
import weakref
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


@dataclass(frozen=True)
class CacheStats:
    entries: int
    hits: int
    misses: int
    locks: int = 0


class ResultCache(Generic[T]):
    """
    Key/value store whose entries go stale `ttl_seconds` after being written.

    Entries are replaced wholesale by `set`. Expired entries are kept so that
    `get_stale` can serve them when recomputation fails; the oldest entry is
    evicted once `max_entries` is reached. `lock_for(key)` hands out one lock
    per key so callers can serialise recomputation of the same key. Locks are
    weakly held: one lives only while some caller still references it.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 1024,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._key_locks: weakref.WeakValueDictionary[Hashable, threading.Lock] = weakref.WeakValueDictionary()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def lock_for(self, key: Hashable) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def get(self, key: Hashable) -> Optional[T]:
        """Fresh value for `key`, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() - entry.stored_at >= self.ttl_seconds:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def get_stale(self, key: Hashable) -> Optional[T]:
        """Last value written for `key`, regardless of age."""
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

    def age(self, key: Hashable) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(key)
            return self._clock() - entry.stored_at if entry is not None else None

    def set(self, key: Hashable, value: T) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                LOGGER.debug("Cache full; evicted %r", oldest)
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one key, or everything when `key` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                locks=len(self._key_locks),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
