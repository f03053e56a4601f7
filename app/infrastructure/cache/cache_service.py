"""
Cache service for high-level caching operations.
Wraps the Redis client and converts Redis failures into StoreError.
"""

from datetime import timedelta
from typing import Any, Optional, Union

from redis.exceptions import RedisError

from app.core.exceptions import StoreError
from app.core.logging import get_logger
from app.infrastructure.cache.redis_client import get_redis_client

logger = get_logger(__name__)


class CacheService:
    """High-level cache service."""

    def __init__(self):
        """Initialize cache service."""
        self._redis_client = None

    async def _get_client(self):
        """Get Redis client instance."""
        if not self._redis_client:
            try:
                self._redis_client = await get_redis_client()
            except (RedisError, OSError) as e:
                raise StoreError(f"Cache unavailable: {e}")
        return self._redis_client

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Raises:
            StoreError: If Redis fails
        """
        client = await self._get_client()
        try:
            return await client.get(key)
        except RedisError as e:
            logger.error(f"Error getting key {key} from cache: {e}")
            raise StoreError(f"Cache read failed: {e}", {"key": key})

    async def set(
        self,
        key: str,
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """
        Set value in cache.

        Raises:
            StoreError: If Redis fails
        """
        client = await self._get_client()
        try:
            return await client.set(key, value, expire)
        except RedisError as e:
            logger.error(f"Error setting key {key} in cache: {e}")
            raise StoreError(f"Cache write failed: {e}", {"key": key})

    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Raises:
            StoreError: If Redis fails
        """
        client = await self._get_client()
        try:
            return await client.delete(key)
        except RedisError as e:
            logger.error(f"Error deleting key {key} from cache: {e}")
            raise StoreError(f"Cache delete failed: {e}", {"key": key})

    def generate_key(self, prefix: str, *parts: str) -> str:
        """Join a prefix and key parts with colons."""
        return ":".join([prefix, *(str(part) for part in parts)])


# Global cache service instance
cache_service = CacheService()
