"""
Wallet Link Service Layer.

Links a signed-for wallet to a user's profile (or unlinks it) and keeps the
NFT flag and auth-provider metadata in step. Session state is left to the
caller.
"""

import time
from datetime import datetime, timezone
from typing import Optional

from app.api.services.nft_service import NftService, nft_service
from app.api.services.profile_service import ProfileService, profile_service
from app.core.config import settings
from app.core.exceptions import (
    InvalidInputError,
    InvalidWalletAddressError,
    NonceExpiredError,
    Result,
    SignatureMismatchError,
    StoreError,
    WalletAlreadyLinkedError,
)
from app.core.logging import get_logger, log_wallet_operation
from app.domain.models.profile import ProfileModel
from app.domain.models.user import AuthUser
from app.domain.repositories.profile_repository import (
    ProfileRepository,
    profile_repository,
)
from app.infrastructure.auth.auth_provider_client import (
    HostedAuthClient,
    hosted_auth_client,
)
from app.infrastructure.blockchain.signature_utils import (
    build_link_message,
    generate_nonce,
    is_valid_address,
    verify_wallet_signature,
)
from app.infrastructure.cache.cache_service import CacheService, cache_service

logger = get_logger(__name__)


class WalletChallengeService:
    """Issues and consumes one-time wallet challenge messages."""

    KEY_PREFIX = "wallet_nonce"

    def __init__(self, cache: Optional[CacheService] = None):
        self.cache = cache or cache_service

    def _key(self, wallet_address: str) -> str:
        return self.cache.generate_key(self.KEY_PREFIX, wallet_address.lower())

    async def issue(self, wallet_address: str) -> Result[str]:
        """Create a challenge message for ``wallet_address``, replacing any earlier one."""
        if not wallet_address:
            return None, InvalidInputError("Wallet address is required")
        if not is_valid_address(wallet_address):
            return None, InvalidWalletAddressError(wallet_address)

        nonce = generate_nonce()
        message = build_link_message(wallet_address, nonce, int(time.time()))
        try:
            await self.cache.set(
                self._key(wallet_address),
                {"nonce": nonce, "message": message},
                expire=settings.NONCE_EXPIRE_MINUTES * 60,
            )
        except StoreError as e:
            return None, e

        log_wallet_operation("challenge", wallet_address)
        return message, None

    async def consume(self, wallet_address: str, message: str) -> Result[bool]:
        """
        Accept ``message`` only if it is the outstanding challenge for the wallet.
        The challenge is deleted on success so it cannot be replayed.
        """
        key = self._key(wallet_address)
        try:
            stored = await self.cache.get(key)
            if not stored or stored.get("message") != message:
                logger.warning("Wallet challenge missing or mismatched", wallet_address=wallet_address)
                return False, NonceExpiredError({"wallet_address": wallet_address})
            await self.cache.delete(key)
        except StoreError as e:
            return False, e

        return True, None


class WalletLinkService:
    """Coordinates linking and unlinking a wallet to a profile."""

    def __init__(
        self,
        profiles: Optional[ProfileRepository] = None,
        ensurer: Optional[ProfileService] = None,
        nfts: Optional[NftService] = None,
        auth_client: Optional[HostedAuthClient] = None,
    ):
        self.profiles = profiles or profile_repository
        self.ensurer = ensurer or profile_service
        self.nfts = nfts or nft_service
        self.auth_client = auth_client or hosted_auth_client

    async def link(
        self,
        user: AuthUser,
        wallet_address: Optional[str],
        signed_message: Optional[str],
        signature: Optional[str],
        access_token: Optional[str] = None,
    ) -> Result[ProfileModel]:
        """
        Link ``wallet_address`` to the user's profile.

        Steps:
        1. Validate inputs
        2. Verify the signature recovers to the wallet
        3. Reject wallets linked to another user
        4. Store the wallet on the profile
        5. Best-effort metadata update on the auth provider
        6. Recheck NFT ownership

        Returns:
            (profile after linking, None) or (None, error). When the NFT recheck
            fails the wallet is already stored, so the linked profile comes back
            together with the error.
        """
        if not wallet_address or not signed_message or not signature:
            return None, InvalidInputError(
                "Wallet address, signed message, and signature are required"
            )
        if not is_valid_address(wallet_address):
            return None, InvalidWalletAddressError(wallet_address)

        if not verify_wallet_signature(signed_message, signature, wallet_address):
            log_wallet_operation("link", wallet_address, user_id=user.id, status="signature_mismatch")
            return None, SignatureMismatchError(wallet_address)

        _, error = await self.ensurer.ensure_for_user(user)
        if error:
            return None, error

        owner, error = await self.profiles.find_by_wallet_address(wallet_address)
        if error:
            return None, error
        if owner and owner.id != user.id:
            log_wallet_operation("link", wallet_address, user_id=user.id, status="already_linked")
            return None, WalletAlreadyLinkedError(wallet_address)

        _, error = await self.profiles.update(user.id, {"wallet_address": wallet_address})
        if error:
            return None, error

        await self._sync_metadata(user, wallet_address, access_token)

        _, error = await self.nfts.check(user.id, wallet_address)
        if error:
            log_wallet_operation("link", wallet_address, user_id=user.id, status="nft_check_failed")
            profile, _ = await self.profiles.get(user.id)
            return profile, error

        log_wallet_operation("link", wallet_address, user_id=user.id, status="success")
        return await self.profiles.get(user.id)

    async def unlink(self, user: AuthUser, access_token: Optional[str] = None) -> Result[ProfileModel]:
        """
        Remove the wallet from the user's profile and clear the NFT flag.
        If only the flag reset fails, the unlinked profile is returned with the error.
        """
        profile, error = await self.ensurer.ensure_for_user(user)
        if error:
            return None, error
        previous_address = profile.wallet_address

        _, error = await self.profiles.update(user.id, {"wallet_address": None})
        if error:
            return None, error

        await self._sync_metadata(user, None, access_token)

        _, error = await self.nfts.clear_status(user.id)
        if error:
            profile, _ = await self.profiles.get(user.id)
            return profile, error

        log_wallet_operation("unlink", previous_address, user_id=user.id, status="success")
        return await self.profiles.get(user.id)

    async def _sync_metadata(
        self, user: AuthUser, wallet_address: Optional[str], access_token: Optional[str]
    ) -> None:
        """Mirror the wallet into auth metadata. Failures are logged and ignored."""
        if not access_token:
            logger.info(f"No access token for {user.id}, skipping wallet metadata update")
            return

        _, error = await self.auth_client.update_user_metadata(
            access_token,
            {
                "walletAddress": wallet_address,
                "wallet_last_signed": datetime.now(timezone.utc).isoformat(),
            },
        )
        if error:
            logger.warning(
                f"Wallet metadata update failed for {user.id}: {error.message}",
                wallet_address=wallet_address,
            )


# Global service instances
wallet_challenge_service = WalletChallengeService()
wallet_link_service = WalletLinkService()
