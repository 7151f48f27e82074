"""In-memory TTL caching for NyxGuard.

Used by:
- Reputation lookups (long TTL for answers, short TTL for failures)
- Per-tab detection results (fixed TTL, superseded on re-evaluation)

Entries carry their own TTL so one cache can hold values with different
lifetimes. The clock is injectable for tests.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheEntry(Generic[T]):
    """Represents a cached value with timestamp."""

    __slots__ = ("value", "timestamp", "ttl_seconds")

    def __init__(self, value: T, timestamp: float, ttl_seconds: Optional[float] = None):
        self.value = value
        self.timestamp = timestamp
        self.ttl_seconds = ttl_seconds

    def is_expired(self, default_ttl: float, now: float) -> bool:
        """Check if this entry has expired (an entry exactly at its TTL is still fresh)."""
        ttl = self.ttl_seconds if self.ttl_seconds is not None else default_ttl
        return now - self.timestamp > ttl


class CacheManager(Generic[T]):
    """
    TTL cache keyed by string.

    Usage:
        cache = CacheManager(ttl_seconds=600, namespace="results")
        cache.set("42", result)
        cached = cache.get("42")
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        namespace: str = "",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Default TTL for cache entries
            namespace: Label used in log messages and stats
            clock: Returns the current time in seconds
        """
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self.clock = clock

        self._memory: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.RLock()

    def get_entry(self, key: str) -> Optional[CacheEntry[T]]:
        """Return the live entry for key, evicting it if expired."""
        with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                return None
            if entry.is_expired(self.ttl_seconds, self.clock()):
                del self._memory[key]
                logger.debug("%s cache entry expired: %s", self.namespace or "cache", key)
                return None
            return entry

    def get(self, key: str) -> Optional[T]:
        """Get cached value if exists and not expired."""
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(
        self,
        key: str,
        value: T,
        ttl_seconds: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> CacheEntry[T]:
        """
        Set cached value, replacing any previous entry.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Override default TTL for this entry
            timestamp: Age the entry from this time instead of now
        """
        created = self.clock() if timestamp is None else timestamp
        entry = CacheEntry(value=value, timestamp=created, ttl_seconds=ttl_seconds)
        with self._lock:
            self._memory[key] = entry
        return entry

    def delete(self, key: str) -> None:
        """Delete cached value."""
        with self._lock:
            self._memory.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._memory.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._memory)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "namespace": self.namespace,
                "ttl_seconds": self.ttl_seconds,
                "memory_entries": len(self._memory),
            }
