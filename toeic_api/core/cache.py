"""
Process-local expiring key/value cache.

Used for billing responses and rate-limit counters. Entries are dropped
lazily when read past their expiry; nothing sweeps in the background.
Swap MemoryCache for a shared store implementing the same methods when
running more than one instance.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class MemoryCache:
    """In-memory cache with per-entry TTL."""

    def __init__(self, name: str = "memory", clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _live_entry(self, key: str) -> Optional[Tuple[Any, float]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._store[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry[0]

    def set(self, key: str, value: Any, ttl: float = 300) -> None:
        """Store a value for ttl seconds."""
        with self._lock:
            self._store[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> int:
        """Remove all entries. Returns count removed."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info(f"Cache cleared: name={self.name}, entries={count}")
        return count

    def incr(self, key: str, amount: int = 1, ttl: float = 60) -> Tuple[int, float]:
        """
        Add amount to a counter, starting a new window of ttl seconds if the
        key is missing or expired. The expiry of a live counter is kept.

        Returns:
            Tuple of (new count, seconds until the window resets)
        """
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key)
            if entry is None:
                count, expires_at = amount, now + ttl
            else:
                count, expires_at = int(entry[0]) + amount, entry[1]
            self._store[key] = (count, expires_at)
            return count, max(0.0, expires_at - now)

    def decr(self, key: str, amount: int = 1) -> Optional[int]:
        """
        Subtract amount from a live counter without touching its expiry.

        A missing or expired key is left alone and None is returned, so a
        late decrement never opens a new window below zero.
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            count = max(0, int(entry[0]) - amount)
            self._store[key] = (count, entry[1])
            return count

    def stats(self) -> Dict[str, Any]:
        """Return hit/miss statistics."""
        total = self._hits + self._misses
        rate = (self._hits / total * 100) if total > 0 else 0
        return {
            "backend": self.name,
            "entries": len(self._store),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{rate:.1f}%",
        }


# Shared instances
billing_cache = MemoryCache("billing")
rate_limit_cache = MemoryCache("rate_limit")
