"""
Caching Package

Key/value store with TTLs and advisory locks shared by the sync tasks.
Redis backs it whenever ``redis_url`` is configured; otherwise an
in-process cache is used.
"""

from functools import lru_cache
from typing import Union

from core.config import get_settings

from .redis_client import RedisClient, RedisCache, CacheLockError
from .memory_cache import MemoryCache

SyncCache = Union[RedisCache, MemoryCache]


@lru_cache(maxsize=None)
def get_cache(namespace: str = "foodhub") -> SyncCache:
    """Get or create the process-wide cache instance"""
    if get_settings().redis_enabled:
        return RedisCache(prefix=namespace)
    return MemoryCache()


__all__ = [
    'RedisClient',
    'RedisCache',
    'MemoryCache',
    'CacheLockError',
    'SyncCache',
    'get_cache',
]
