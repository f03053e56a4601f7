"""
Wallet Router.
Issues wallet challenges and links or unlinks a wallet on the caller's profile.
"""

from fastapi import APIRouter, Depends, Query

from app.api.deps.auth_guard import (
    AuthenticatedUser,
    get_current_user,
    get_session_registry,
)
from app.api.dto.profile_dto import ProfileResponseDTO
from app.api.dto.wallet_dto import (
    LinkWalletRequestDTO,
    WalletChallengeDataDTO,
    WalletChallengeResponseDTO,
    WalletLinkResponseDTO,
)
from app.api.services.session_service import SessionRegistry
from app.api.services.wallet_link_service import (
    wallet_challenge_service,
    wallet_link_service,
)
from app.core.config import settings
from app.core.exceptions import create_http_exception
from app.core.logging import get_logger
from app.domain.models.profile import ProfileModel

logger = get_logger(__name__)

router = APIRouter()


async def _sync_session(registry: SessionRegistry, profile: ProfileModel) -> None:
    controller = registry.get(profile.id)
    if controller is not None:
        await controller.apply_linked_profile(profile)


@router.get("/challenge", response_model=WalletChallengeResponseDTO)
async def get_wallet_challenge(
    address: str = Query(..., description="Wallet address that will sign"),
) -> WalletChallengeResponseDTO:
    """
    Get a one-time message for the wallet to sign before linking.
    """
    message, error = await wallet_challenge_service.issue(address)
    if error:
        raise create_http_exception(error)

    return WalletChallengeResponseDTO(
        success=True,
        message="Challenge issued",
        data=WalletChallengeDataDTO(
            wallet_address=address,
            message=message,
            expires_in=settings.NONCE_EXPIRE_MINUTES * 60,
        ),
    )


@router.post("/link", response_model=WalletLinkResponseDTO)
async def link_wallet(
    request: LinkWalletRequestDTO,
    current_user: AuthenticatedUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> WalletLinkResponseDTO:
    """
    Link a wallet to the caller's profile.

    This endpoint:
    1. Consumes the outstanding challenge (when challenges are required)
    2. Verifies the signature and links the wallet
    3. Rechecks NFT ownership
    4. Updates the caller's live session wallet
    """
    if settings.REQUIRE_WALLET_CHALLENGE:
        _, error = await wallet_challenge_service.consume(
            request.wallet_address, request.signed_message
        )
        if error:
            raise create_http_exception(error)

    profile, error = await wallet_link_service.link(
        current_user.user,
        request.wallet_address,
        request.signed_message,
        request.signature,
        access_token=current_user.access_token,
    )
    # The wallet can be stored even when the NFT recheck fails
    if profile is not None:
        await _sync_session(registry, profile)
    if error:
        raise create_http_exception(error)

    return WalletLinkResponseDTO(
        success=True,
        message="Wallet linked successfully",
        data=ProfileResponseDTO.from_profile(profile),
    )


@router.post("/unlink", response_model=WalletLinkResponseDTO)
async def unlink_wallet(
    current_user: AuthenticatedUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> WalletLinkResponseDTO:
    """
    Remove the wallet from the caller's profile. Clears the NFT flag.
    """
    profile, error = await wallet_link_service.unlink(
        current_user.user, access_token=current_user.access_token
    )
    if profile is not None:
        await _sync_session(registry, profile)
    if error:
        raise create_http_exception(error)

    return WalletLinkResponseDTO(
        success=True,
        message="Wallet unlinked successfully",
        data=ProfileResponseDTO.from_profile(profile),
    )
