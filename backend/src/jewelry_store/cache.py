"""Redis caching layer for dashboard widgets and rate limiting.

Every operation fails open: when Redis is disabled or unreachable, reads miss
and writes are dropped, so callers fall back to the database.
"""
import json
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
import structlog

from jewelry_store.config import settings

logger = structlog.get_logger(__name__)


class RedisCache:
    """Redis-based caching layer."""

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        """Initialize lazily; no connection is opened until first use."""
        self.url = url or settings.redis_url
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self.redis_client: Optional[redis.Redis] = None
        self._initialized = False

    async def _ensure_connection(self) -> redis.Redis:
        """
        Ensure Redis connection is established.

        Returns:
            Redis client instance

        Raises:
            RuntimeError: If caching is disabled
        """
        if not self.enabled:
            raise RuntimeError("cache disabled")

        if not self._initialized or self.redis_client is None:
            try:
                self.redis_client = redis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                await self.redis_client.ping()
                self._initialized = True
                logger.info("redis_connected", url=self.url)
            except Exception as e:
                logger.error("redis_connection_failed", error=str(e))
                raise

        return self.redis_client

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found, expired or unavailable
        """
        if not self.enabled:
            return None
        try:
            client = await self._ensure_connection()
            value = await client.get(key)

            if value is None:
                logger.debug("cache_miss", key=key)
                return None

            logger.debug("cache_hit", key=key)
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value

        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time-to-live in seconds

        Returns:
            True if stored, False otherwise
        """
        if not self.enabled:
            return False
        try:
            client = await self._ensure_connection()
            await client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug("cache_set", key=key, ttl=ttl)
            return True

        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False

    async def get_or_compute(self, key: str, ttl: int, compute: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await compute()
        await self.set(key, value, ttl)
        return value

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys matching a pattern.

        Args:
            pattern: Key pattern (e.g., "widget:*")

        Returns:
            Number of keys deleted
        """
        if not self.enabled:
            return 0
        try:
            client = await self._ensure_connection()

            deleted = 0
            async for key in client.scan_iter(match=pattern):
                await client.delete(key)
                deleted += 1

            logger.info("cache_pattern_invalidated", pattern=pattern, count=deleted)
            return deleted

        except Exception as e:
            logger.warning("cache_pattern_invalidation_failed", pattern=pattern, error=str(e))
            return 0

    async def increment_window(self, key: str, window_seconds: int) -> Optional[int]:
        """
        Increment a fixed-window counter, starting its expiry on first hit.

        Returns:
            New count, or None if Redis is unavailable
        """
        if not self.enabled:
            return None
        try:
            client = await self._ensure_connection()
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, window_seconds)
            return count

        except Exception as e:
            logger.warning("cache_increment_failed", key=key, error=str(e))
            return None

    async def ttl(self, key: str) -> int:
        """Seconds until ``key`` expires, 0 when unknown."""
        if not self.enabled:
            return 0
        try:
            client = await self._ensure_connection()
            return max(int(await client.ttl(key)), 0)
        except Exception as e:
            logger.warning("cache_ttl_failed", key=key, error=str(e))
            return 0

    async def ping(self) -> bool:
        """True when Redis answers."""
        try:
            client = await self._ensure_connection()
            return bool(await client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self._initialized = False
            logger.info("redis_closed")


# Global cache instance
cache = RedisCache()


def cache_key(entity_type: str, entity_id: str, suffix: str = "") -> str:
    """
    Generate consistent cache key.

    Args:
        entity_type: Entity type (widget, rate_limit, ...)
        entity_id: Entity ID
        suffix: Optional suffix for variations

    Returns:
        Cache key string
    """
    if suffix:
        return f"{entity_type}:{entity_id}:{suffix}"
    return f"{entity_type}:{entity_id}"
