"""
Core caching functionality for the stake history API.

This module provides a small in-memory TTL cache that is safe to share
between concurrent request handlers. Entries expire logically as soon as
their deadline passes and are removed physically on the next access, by
an explicit sweep, or when the cache needs room for a new key.
"""
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

import structlog

logger = structlog.get_logger()

# Type variable for the stored value type
V = TypeVar('V')


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value together with its absolute expiry time."""
    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TTLCache(Generic[V]):
    """
    Thread-safe in-memory cache with per-entry time-to-live.

    One instance holds one kind of value, so readers never need to
    downcast what they get back. All operations are serialized by a single
    lock; a reader never observes a partially written entry.
    """

    def __init__(
        self,
        default_ttl: float = 3600,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Time-to-live in seconds used when ``set`` gets none
            max_size: Maximum number of keys to hold, or None for unbounded
            clock: Monotonic time source, replaceable in tests
        """
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: Dict[str, CacheEntry[V]] = {}
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Tuple[Optional[V], bool]:
        """
        Get a value from the cache.

        Args:
            key: Cache key to retrieve

        Returns:
            ``(value, True)`` on a hit, ``(None, False)`` when the key is
            absent or its entry has expired
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None, False

            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None, False

            self._hits += 1
            return entry.value, True

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        """
        Store a value, replacing any previous entry for the key.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds, or None to use the default
        """
        with self._lock:
            now = self._clock()
            if self._max_size is not None and key not in self._entries:
                self._make_room(now)

            expires_at = now + (ttl if ttl is not None else self._default_ttl)
            self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        """
        Delete a key from the cache.

        Returns:
            True if an entry was removed, False if the key was not cached
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("cache_swept", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        """Drop all entries and reset the statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def _make_room(self, now: float) -> None:
        # Called with the lock held, before inserting a new key.
        if len(self._entries) < self._max_size:
            return
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
        if len(self._entries) >= self._max_size:
            victim = min(self._entries.items(), key=lambda item: item[1].expires_at)[0]
            del self._entries[victim]
            logger.debug("cache_evicted", key=victim)

    def _live_count(self, now: float) -> int:
        # Expired entries awaiting removal are already absent to readers.
        return sum(1 for e in self._entries.values() if not e.is_expired(now))

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return self._live_count(self._clock())

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        with self._lock:
            now = self._clock()
            total_requests = self._hits + self._misses
            hit_ratio = self._hits / total_requests if total_requests > 0 else 0

            return {
                'size': self._live_count(now),
                'max_size': self._max_size,
                'hits': self._hits,
                'misses': self._misses,
                'hit_ratio': hit_ratio,
            }
