"""
NFT Router.
Membership NFT status, records and images for the caller.
"""

from fastapi import APIRouter, Depends, Path

from app.api.deps.auth_guard import AuthenticatedUser, get_current_user
from app.api.dto.nft_dto import (
    NftImageUpdateRequestDTO,
    NftListResponseDTO,
    NftMintRequestDTO,
    NftRecordResponseDTO,
    NftResponseDTO,
    NftStatusDataDTO,
    NftStatusResponseDTO,
)
from app.api.services.nft_service import nft_service
from app.api.services.profile_service import profile_service
from app.core.exceptions import InvalidInputError, create_http_exception
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _linked_wallet(current_user: AuthenticatedUser) -> str:
    profile, error = await profile_service.ensure_for_user(current_user.user)
    if error:
        raise create_http_exception(error)
    if not profile.wallet_address:
        raise create_http_exception(InvalidInputError("No wallet linked to this profile"))
    return profile.wallet_address


@router.get("/mine", response_model=NftListResponseDTO)
async def get_my_nfts(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> NftListResponseDTO:
    nfts, error = await nft_service.list_user_nfts(current_user.user_id)
    if error:
        raise create_http_exception(error)

    return NftListResponseDTO(
        success=True,
        message=f"Found {len(nfts)} NFTs",
        data=nfts,
    )


@router.post("/check", response_model=NftStatusResponseDTO)
async def check_nft_status(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> NftStatusResponseDTO:
    """
    Recheck NFT ownership of the linked wallet and store the result on the profile.
    """
    wallet_address = await _linked_wallet(current_user)

    has_nft, error = await nft_service.check(current_user.user_id, wallet_address)
    if error:
        raise create_http_exception(error)

    return NftStatusResponseDTO(
        success=True,
        message="NFT status updated",
        data=NftStatusDataDTO(wallet_address=wallet_address, has_nft=has_nft),
    )


@router.post("/mint", response_model=NftRecordResponseDTO)
async def record_mint(
    request: NftMintRequestDTO,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> NftRecordResponseDTO:
    """
    Record a membership NFT minted to the linked wallet.
    """
    wallet_address = await _linked_wallet(current_user)

    record, error = await nft_service.record_mint(
        current_user.user_id,
        wallet_address,
        transaction_hash=request.transaction_hash,
        token_id=request.token_id,
    )
    if error and record is None:
        raise create_http_exception(error)
    if error:
        logger.warning(f"NFT {record.id} recorded with profile sync error: {error.message}")

    return NftRecordResponseDTO(
        success=True,
        message="NFT recorded",
        data=NftResponseDTO.from_record(record),
    )


@router.patch("/{nft_id}/image", response_model=NftRecordResponseDTO)
async def update_nft_image(
    request: NftImageUpdateRequestDTO,
    nft_id: str = Path(..., description="NFT record ID"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> NftRecordResponseDTO:
    record, error = await nft_service.update_image_url(
        nft_id, current_user.user_id, request.image_url
    )
    if error and record is None:
        raise create_http_exception(error)

    return NftRecordResponseDTO(
        success=True,
        message="NFT image updated",
        data=NftResponseDTO.from_record(record),
    )
