"""
Cache infrastructure module.
Provides Redis-backed storage for the session wallet cache and wallet challenges.
"""

from .redis_client import RedisClient, redis_client, get_redis_client
from .cache_service import CacheService, cache_service
from .wallet_cache import WalletCache

__all__ = [
    "RedisClient",
    "redis_client",
    "get_redis_client",
    "CacheService",
    "cache_service",
    "WalletCache",
]
