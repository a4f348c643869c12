"""
Redis-backed sync store.

Holds the TTL'd flags, connection health records and advisory locks the
sync layer shares between workers. Values are stored as JSON.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional
import json
import logging

from redis import ConnectionPool, Redis
from redis.exceptions import LockError, RedisError

from core.config import get_settings

logger = logging.getLogger(__name__)


class CacheLockError(Exception):
    """Raised when an advisory lock cannot be acquired in time."""

    def __init__(self, name: str, reason: str = "lock busy"):
        self.name = name
        self.reason = reason
        super().__init__(f"Could not acquire lock {name}: {reason}")


class RedisClient:
    """Process-wide Redis connection shared by every ``RedisCache``."""

    _pool: Optional[ConnectionPool] = None
    _client: Optional[Redis] = None

    @classmethod
    def _build_pool(cls) -> ConnectionPool:
        settings = get_settings()
        # A store slower than the timeout is treated as unavailable
        options = dict(
            decode_responses=False,
            max_connections=50,
            socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
            socket_timeout=settings.STORE_TIMEOUT_SECONDS,
            retry_on_timeout=False,
        )
        if settings.redis_url:
            return ConnectionPool.from_url(settings.redis_url, **options)
        return ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            **options,
        )

    @classmethod
    def get_client(cls) -> Redis:
        if cls._client is None:
            cls._pool = cls._build_pool()
            cls._client = Redis(connection_pool=cls._pool)
            logger.info("Sync store connected to Redis")
        return cls._client

    @classmethod
    def close(cls) -> None:
        if cls._pool is not None:
            cls._pool.disconnect()
            logger.info("Sync store Redis pool closed")
        cls._pool = None
        cls._client = None


class RedisCache:
    """
    JSON-serialized store with TTLs and locks.

    Read and write errors are logged and reported as a miss or ``False``,
    so callers built on top of it fail open when Redis is unavailable.
    Lock acquisition is the exception: it raises ``CacheLockError``.
    """

    def __init__(self, prefix: str = "foodhub", client: Optional[Redis] = None):
        self.client = client or RedisClient.get_client()
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _load(self, raw: Optional[bytes]) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Discarding undecodable sync store value: {e}")
            return None

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(self._key(key))
        except RedisError as e:
            logger.error(f"Sync store read failed for {key}: {e}")
            return None
        return self._load(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store ``value`` under ``key``, expiring after ``ttl`` seconds when given.

        Returns:
            True when Redis accepted the write
        """
        encoded = json.dumps(value, default=str).encode("utf-8")
        try:
            if ttl:
                return bool(self.client.setex(self._key(key), ttl, encoded))
            return bool(self.client.set(self._key(key), encoded))
        except RedisError as e:
            logger.error(f"Sync store write failed for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            return bool(self.client.delete(self._key(key)))
        except RedisError as e:
            logger.error(f"Sync store delete failed for {key}: {e}")
            return False

    def exists(self, key: str) -> bool:
        try:
            return bool(self.client.exists(self._key(key)))
        except RedisError as e:
            logger.error(f"Sync store lookup failed for {key}: {e}")
            return False

    @contextmanager
    def lock(self, name: str, ttl: int, blocking_timeout: float) -> Iterator[None]:
        """
        Hold a Redis advisory lock for the duration of the block.

        Raises:
            CacheLockError: lock held elsewhere or Redis unreachable
        """
        redis_lock = self.client.lock(
            self._key(name),
            timeout=ttl,
            blocking_timeout=blocking_timeout,
        )
        try:
            acquired = redis_lock.acquire(blocking=True)
        except RedisError as e:
            raise CacheLockError(name, str(e)) from e
        if not acquired:
            raise CacheLockError(name)
        try:
            yield
        finally:
            try:
                redis_lock.release()
            except (LockError, RedisError) as e:
                # The TTL already freed it; nothing else holds our token
                logger.warning(f"Redis lock release failed for {name}: {e}")
