"""
Redis client for the wallet cache and wallet challenges.
Handles connection management and JSON serialization.
"""

import json
from datetime import timedelta
from typing import Any, Optional, Union

import redis.asyncio as redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Redis client with JSON serialization support."""

    def __init__(self):
        """Initialize Redis client."""
        self._client: Optional[redis.Redis] = None
        self._connection_pool: Optional[redis.ConnectionPool] = None

    async def connect(self) -> None:
        """Establish connection to Redis server."""
        try:
            self._connection_pool = redis.ConnectionPool.from_url(
                settings.REDIS_URI,
                db=settings.REDIS_DB,
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True,
            )
            self._client = redis.Redis(connection_pool=self._connection_pool)

            await self._client.ping()
            logger.info(f"Connected to Redis at {settings.REDIS_URI}")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a value, decoding JSON when possible.

        Args:
            key (str): Cache key

        Returns:
            Optional[Any]: Deserialized value or None if not found
        """
        if not self._client:
            await self.connect()

        value = await self._client.get(key)
        if value is None:
            logger.debug(f"Cache miss for key: {key}")
            return None

        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.debug(f"Cache hit for key: {key} (non-JSON)")
            return value

    async def set(
        self,
        key: str,
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """
        Set a JSON-serialized value.

        Args:
            key (str): Cache key
            value (Any): Value to cache
            expire (Optional[Union[int, timedelta]]): Expiration in seconds or timedelta

        Returns:
            bool: True if Redis acknowledged the write
        """
        if not self._client:
            await self.connect()

        result = await self._client.set(key, json.dumps(value, default=str), ex=expire)
        if not result:
            logger.warning(f"Failed to set cache for key: {key}")
        return bool(result)

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            bool: True if a key was removed
        """
        if not self._client:
            await self.connect()

        return bool(await self._client.delete(key))

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        if not self._client:
            await self.connect()

        return bool(await self._client.exists(key))


# Global Redis client instance
redis_client = RedisClient()


async def get_redis_client() -> RedisClient:
    """
    Get Redis client instance.

    Returns:
        RedisClient: Redis client instance
    """
    if not redis_client._client:
        await redis_client.connect()
    return redis_client
