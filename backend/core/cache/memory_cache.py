"""
In-process TTL cache with the same interface as ``RedisCache``.

Used by the test suite and by single-process deployments that run without
Redis. The clock is injectable so expiry can be driven deterministically.
"""

import time
import threading
import logging
from typing import Any, Callable, Dict, Iterator, Optional
from collections import OrderedDict
from contextlib import contextmanager
import copy

from .redis_client import CacheLockError

logger = logging.getLogger(__name__)


class MemoryCache:
    """Thread-safe LRU cache with per-key expiry and advisory locks."""

    def __init__(
        self,
        max_size: int = 10000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_size = max_size
        self.clock = clock or time.time
        self.cache: "OrderedDict[str, tuple[Any, Optional[float]]]" = OrderedDict()
        self._mutex = threading.Lock()
        self._locks: Dict[str, float] = {}
        self._locks_changed = threading.Condition(self._mutex)
        self.stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def _expired(self, expiry_time: Optional[float]) -> bool:
        return expiry_time is not None and self.clock() >= expiry_time

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        with self._mutex:
            if key not in self.cache:
                self.stats["misses"] += 1
                return None

            value, expiry_time = self.cache[key]
            if self._expired(expiry_time):
                del self.cache[key]
                self.stats["expirations"] += 1
                self.stats["misses"] += 1
                return None

            self.cache.move_to_end(key)
            self.stats["hits"] += 1
            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache; ``ttl=None`` keeps it until evicted."""
        with self._mutex:
            expiry_time = self.clock() + ttl if ttl else None

            while len(self.cache) >= self.max_size and key not in self.cache:
                oldest_key = next(iter(self.cache))
                del self.cache[oldest_key]
                self.stats["evictions"] += 1

            self.cache[key] = (copy.deepcopy(value), expiry_time)
            self.cache.move_to_end(key)
            return True

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        with self._mutex:
            return self.cache.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        """Clear all cache entries and locks."""
        with self._mutex:
            self.cache.clear()
            self._locks.clear()

    def ttl(self, key: str) -> Optional[float]:
        """Remaining lifetime in seconds, ``None`` for missing or persistent keys."""
        with self._mutex:
            entry = self.cache.get(key)
            if entry is None or entry[1] is None:
                return None
            return max(0.0, entry[1] - self.clock())

    def _lock_free(self, name: str) -> bool:
        expiry_time = self._locks.get(name)
        return expiry_time is None or self.clock() >= expiry_time

    @contextmanager
    def lock(self, name: str, ttl: int, blocking_timeout: float) -> Iterator[None]:
        """
        Hold an advisory lock for the duration of the block.

        Raises:
            CacheLockError: lock still held after ``blocking_timeout`` seconds
        """
        with self._locks_changed:
            if not self._lock_free(name):
                self._locks_changed.wait_for(lambda: self._lock_free(name), timeout=blocking_timeout)
            if not self._lock_free(name):
                raise CacheLockError(name)
            self._locks[name] = self.clock() + ttl
        try:
            yield
        finally:
            with self._locks_changed:
                self._locks.pop(name, None)
                self._locks_changed.notify_all()

    def is_locked(self, name: str) -> bool:
        with self._mutex:
            return not self._lock_free(name)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (
            (self.stats["hits"] / total_requests * 100)
            if total_requests > 0
            else 0
        )

        return {
            **self.stats,
            "size": len(self.cache),
            "max_size": self.max_size,
            "hit_rate": f"{hit_rate:.2f}%"
        }
