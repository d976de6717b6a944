import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


DEFAULT_CAPACITY = 50
DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStore:
    """Bounded in-memory TTL cache with FIFO eviction.

    Entries leave the store in insertion order once capacity is reached;
    reads never reorder them. Expired entries are dropped lazily on ``get``
    and eagerly by ``sweep``.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache store.

        Args:
            capacity: Maximum number of entries held at once
            default_ttl_seconds: TTL used when ``set`` is called without one
            clock: Returns the current time in seconds
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: TTL in seconds (uses default if None)
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")

        with self._lock:
            now = self._clock()
            existing = self._entries.get(key)
            if existing is not None:
                # Overwrite keeps the original eviction position
                existing.value = value
                existing.stored_at = now
                existing.expires_at = now + ttl
                return

            if len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)

            self._entries[key] = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl)

    def delete(self, key: str) -> bool:
        """Delete key from cache. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """
        Remove expired entries from cache.

        Returns:
            Number of expired entries removed
        """
        with self._lock:
            now = self._clock()
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._entries[key]
            return len(expired_keys)

    def clear(self) -> int:
        """Clear all cache entries and return how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def size(self) -> int:
        """Get current number of cache entries (including not yet swept ones)."""
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[str]:
        """Get all cache keys in eviction order."""
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hitCount": self._hits,
                "missCount": self._misses,
            }
