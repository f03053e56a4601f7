"""
Persisted wallet cache.
One key per user holding the serialized session wallet; last writer wins.
"""

from typing import Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.domain.models.user import WalletModel
from app.infrastructure.cache.cache_service import CacheService, cache_service

logger = get_logger(__name__)


class WalletCache:
    """Reads and writes the cached session wallet."""

    def __init__(self, cache: Optional[CacheService] = None):
        self.cache = cache or cache_service

    def key_for(self, user_id: str) -> str:
        return self.cache.generate_key(settings.WALLET_CACHE_KEY_PREFIX, user_id)

    async def load(self, user_id: str) -> Optional[WalletModel]:
        """
        Restore the cached wallet. An unreadable entry is removed and treated as absent.

        Raises:
            StoreError: If the cache backend fails
        """
        key = self.key_for(user_id)
        data = await self.cache.get(key)
        if not data:
            return None

        try:
            return WalletModel.model_validate(data)
        except ValidationError as e:
            logger.error(f"Error parsing cached wallet for {user_id}: {e}")
            await self.cache.delete(key)
            return None

    async def save(self, user_id: str, wallet: WalletModel) -> None:
        await self.cache.set(
            self.key_for(user_id),
            wallet.to_cache(),
            expire=settings.wallet_cache_expire_seconds,
        )

    async def clear(self, user_id: str) -> None:
        await self.cache.delete(self.key_for(user_id))
