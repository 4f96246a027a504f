"""
Cache backend interface for the CAS backend.

The permission-check cache talks to a ``CacheBackend``. Two interchangeable
implementations exist:
- RedisCacheBackend: shared between processes, selected when CAS_REDIS_URL is set
- InMemoryCacheBackend: single-process deployments and tests

Example usage:
    backend = await create_cache_backend(settings)
    await backend.set("my_key", "my_value", ttl_seconds=300)
    value = await backend.get("my_key")
"""

import logging
import threading
import time
from typing import Any, Protocol, runtime_checkable

import redis.asyncio as redis

from .config import Settings

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Base exception for cache operations.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class CacheConnectionError(CacheError):
    """Raised when the cache backend is unreachable."""


class CacheKeyError(CacheError):
    """Raised when the provided key is invalid (e.g. empty)."""


class CacheTypeError(CacheError):
    """Raised when incr is attempted on a non-numeric value."""


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol defining the cache backend interface.

    Keys and values are strings. Consumers namespace their keys
    (e.g. "acl:gen:<user>:<plugin>") and serialize values themselves.
    """

    async def get(self, key: str) -> str | None:
        """Return the value for key, or None if missing or expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        """Store value under key, optionally expiring after ttl_seconds."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key; return True if it existed."""
        ...

    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically increment an integer value (missing keys count as 0)."""
        ...


class InMemoryCacheBackend:
    """In-memory cache implementation with TTL support.

    Thread-safe via an RLock. Expired entries are dropped lazily on access and
    periodically swept so long-lived processes do not accumulate dead keys.

    Limitations:
        - Data is not shared across processes
        - Data is lost on process restart
    """

    def __init__(self, cleanup_interval_seconds: int = 60):
        # key -> (value, expiry timestamp or None)
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.RLock()
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup = time.time()

    def _is_expired(self, expiry: float | None) -> bool:
        if expiry is None:
            return False
        return time.time() > expiry

    def _maybe_cleanup(self) -> None:
        """Sweep expired entries if the interval has passed. Call with the lock held."""
        if self._cleanup_interval <= 0:
            return

        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = current_time

        expired_keys = [key for key, (_, expiry) in self._data.items() if self._is_expired(expiry)]
        for key in expired_keys:
            del self._data[key]

    async def get(self, key: str) -> str | None:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()
            if key not in self._data:
                return None
            value, expiry = self._data[key]
            if self._is_expired(expiry):
                del self._data[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        """Store a value; a non-positive TTL deletes the key immediately."""
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()
            if ttl_seconds is not None and ttl_seconds <= 0:
                self._data.pop(key, None)
                return True
            expiry = time.time() + ttl_seconds if ttl_seconds is not None else None
            self._data[key] = (value, expiry)
            return True

    async def delete(self, key: str) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            entry = self._data.pop(key, None)
            return entry is not None and not self._is_expired(entry[1])

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment a numeric value, keeping any existing expiry.

        Raises:
            CacheKeyError: If the key is empty.
            CacheTypeError: If the existing value is not a valid integer.
        """
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()
            current_value = 0
            current_expiry: float | None = None

            if key in self._data:
                value_str, expiry = self._data[key]
                if self._is_expired(expiry):
                    del self._data[key]
                else:
                    try:
                        current_value = int(value_str)
                        current_expiry = expiry
                    except ValueError as e:
                        raise CacheTypeError(f"Value for key '{key}' is not a valid integer: {value_str!r}") from e

            new_value = current_value + amount
            self._data[key] = (str(new_value), current_expiry)
            return new_value


class RedisCacheBackend:
    """Redis-backed cache implementation.

    Wraps an async Redis client created with ``decode_responses=True``.
    Connection failures surface as CacheConnectionError.
    """

    def __init__(self, redis_client: Any):
        self._client = redis_client

    async def get(self, key: str) -> str | None:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            return await self._client.get(key)
        except Exception as e:
            logger.error(f"Redis GET failed for key '{key}': {e}")
            raise CacheConnectionError(
                f"Failed to get key '{key}' from Redis", details={"key": key, "error": str(e)}
            ) from e

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            if ttl_seconds is not None and ttl_seconds <= 0:
                await self._client.delete(key)
                return True
            if ttl_seconds is not None:
                # setex sets value and expiry atomically
                await self._client.setex(key, ttl_seconds, value)
            else:
                await self._client.set(key, value)
            return True
        except Exception as e:
            logger.error(f"Redis SET failed for key '{key}': {e}")
            raise CacheConnectionError(
                f"Failed to set key '{key}' in Redis", details={"key": key, "error": str(e)}
            ) from e

    async def delete(self, key: str) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            result = await self._client.delete(key)
            return result > 0
        except Exception as e:
            logger.error(f"Redis DELETE failed for key '{key}': {e}")
            raise CacheConnectionError(
                f"Failed to delete key '{key}' from Redis", details={"key": key, "error": str(e)}
            ) from e

    async def incr(self, key: str, amount: int = 1) -> int:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            if amount == 1:
                result = await self._client.incr(key)
            else:
                result = await self._client.incrby(key, amount)
            return int(result)
        except Exception as e:
            error_str = str(e).lower()
            if "not an integer" in error_str or "wrongtype" in error_str:
                raise CacheTypeError(
                    f"Value for key '{key}' is not a valid integer", details={"key": key, "error": str(e)}
                ) from e
            logger.error(f"Redis INCR failed for key '{key}': {e}")
            raise CacheConnectionError(
                f"Failed to increment key '{key}' in Redis",
                details={"key": key, "amount": amount, "error": str(e)},
            ) from e

    async def close(self) -> None:
        await self._client.aclose()


async def _create_redis_client(settings: Settings) -> Any:
    """Create a Redis client and verify it answers PING.

    Raises:
        CacheConnectionError: If Redis connection fails.
    """
    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connection_timeout,
        )
        await client.ping()
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise CacheConnectionError(
            f"Redis connection failed: {e}", details={"redis_url": settings.redis_url, "error": str(e)}
        ) from e

    logger.info(
        "Redis client initialized successfully",
        extra={
            "connection_timeout": settings.redis_connection_timeout,
            "socket_timeout": settings.redis_socket_timeout,
        },
    )
    return client


async def create_cache_backend(settings: Settings) -> CacheBackend | None:
    """Build the permission-check cache configured by settings.

    Returns None when the cache is disabled. A configured Redis that cannot be
    reached raises CacheConnectionError; there is no silent downgrade to the
    per-process cache because that would leave other workers with stale entries.
    """
    if not settings.permission_cache_enabled:
        logger.info("Permission check cache disabled")
        return None

    if settings.redis_enabled:
        client = await _create_redis_client(settings)
        logger.info("Using RedisCacheBackend for permission checks")
        return RedisCacheBackend(client)

    logger.warning("Using per-process InMemoryCacheBackend for permission checks; run a single worker")
    return InMemoryCacheBackend()
