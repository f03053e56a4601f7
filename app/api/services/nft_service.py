"""
NFT Service Layer.

Decides whether a wallet holds a membership NFT and keeps the profile's
``has_nft`` flag and embedded NFT list in step with the ``nfts`` store.
"""

from typing import List, Optional, Protocol

from app.core.config import settings
from app.core.exceptions import InvalidInputError, Result
from app.core.logging import get_logger, log_nft_check
from app.domain.models.nft import NftCreateModel, NftModel, NftSummary
from app.domain.repositories.nft_repository import NftRepository, nft_repository
from app.domain.repositories.profile_repository import (
    ProfileRepository,
    profile_repository,
)

logger = get_logger(__name__)


class NftOwnershipSource(Protocol):
    """Where NFT ownership is looked up. An external indexer can implement this."""

    async def count_owned(self, wallet_address: str) -> Result[int]:
        ...


class StoreNftOwnershipSource:
    """Ownership as recorded in the local ``nfts`` collection."""

    def __init__(self, repository: Optional[NftRepository] = None):
        self.repository = repository or nft_repository

    async def count_owned(self, wallet_address: str) -> Result[int]:
        return await self.repository.count_by_owner(wallet_address)


class NftService:
    """Service class for NFT status and records."""

    def __init__(
        self,
        profiles: Optional[ProfileRepository] = None,
        nfts: Optional[NftRepository] = None,
        ownership: Optional[NftOwnershipSource] = None,
    ):
        self.profiles = profiles or profile_repository
        self.nfts = nfts or nft_repository
        self.ownership = ownership or StoreNftOwnershipSource(self.nfts)

    async def check(self, user_id: str, wallet_address: str) -> Result[bool]:
        """
        Check whether ``wallet_address`` owns any NFT and write the answer onto
        the profile. The write happens even when the flag is unchanged.

        Returns:
            (has_nft, None), or (has_nft, error) when the profile write failed
        """
        if not user_id or not wallet_address:
            return False, InvalidInputError("Missing required parameters")

        count, error = await self.ownership.count_owned(wallet_address)
        if error:
            return False, error

        has_nft = count > 0
        _, error = await self.profiles.update(user_id, {"has_nft": has_nft})
        if error:
            logger.error(f"Error updating NFT status for {user_id}: {error.message}")
            return has_nft, error

        log_nft_check(user_id, wallet_address, has_nft, nft_count=count)
        return has_nft, None

    async def clear_status(self, user_id: str) -> Result[bool]:
        """Force ``has_nft`` to false, as done when a wallet is unlinked."""
        _, error = await self.profiles.update(user_id, {"has_nft": False})
        if error:
            return False, error
        log_nft_check(user_id, None, False, reason="wallet_unlinked")
        return False, None

    async def list_user_nfts(self, user_id: str) -> Result[List[NftSummary]]:
        """
        The user's NFTs: the profile's embedded list when it has one, otherwise
        the user's records from the ``nfts`` collection, newest first.
        """
        if not user_id:
            return [], InvalidInputError("Missing user ID")

        profile, error = await self.profiles.get(user_id)
        if error is None and profile and profile.nfts:
            return profile.nfts, None

        records, error = await self.nfts.list_by_user(user_id)
        if error:
            return [], error
        return [record.to_summary() for record in records], None

    async def record_mint(
        self,
        user_id: str,
        wallet_address: str,
        transaction_hash: Optional[str] = None,
        token_id: Optional[int] = None,
    ) -> Result[NftModel]:
        """
        Record a membership NFT for ``wallet_address``, append it to the
        profile's NFT list and set ``has_nft``.
        """
        if not user_id or not wallet_address:
            return None, InvalidInputError("Missing required parameters")

        record, error = await self.nfts.create(
            NftCreateModel(
                user_id=user_id,
                name=settings.MEMBERSHIP_NFT_NAME,
                description=settings.MEMBERSHIP_NFT_DESCRIPTION,
                image_url=settings.MEMBERSHIP_NFT_IMAGE_URL or None,
                token_id=token_id,
                owner_address=wallet_address,
                transaction_hash=transaction_hash,
            )
        )
        if error:
            return None, error

        _, error = await self.profiles.append_nft(user_id, record.to_summary())
        if error:
            logger.error(f"NFT {record.id} recorded but profile update failed: {error.message}")
            return record, error

        return record, None

    async def update_image_url(self, nft_id: str, user_id: str, image_url: str) -> Result[NftModel]:
        """Update an NFT's image in its record and in the profile's embedded list."""
        if not nft_id or not user_id or not image_url:
            return None, InvalidInputError("Missing required parameters")

        record, error = await self.nfts.update_image_url(nft_id, user_id, image_url)
        if error:
            return None, error

        profile, error = await self.profiles.get(user_id)
        if error:
            return record, error
        if profile and any(nft.id == nft_id for nft in profile.nfts):
            updated = [
                nft.model_copy(update={"image_url": image_url}) if nft.id == nft_id else nft
                for nft in profile.nfts
            ]
            _, error = await self.profiles.set_nfts(user_id, updated)
            if error:
                return record, error

        return record, None


# Global service instance
nft_service = NftService()
