"""
Profile Router.
Reads and edits the caller's membership profile.
"""

from fastapi import APIRouter, Depends

from app.api.deps.auth_guard import (
    AuthenticatedUser,
    get_current_user,
    get_session_controller,
)
from app.api.dto.profile_dto import (
    ProfileEnvelopeDTO,
    ProfileResponseDTO,
    ProfileUpdateRequestDTO,
)
from app.api.services.profile_service import profile_service
from app.api.services.session_service import SessionController
from app.core.exceptions import create_http_exception
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/me", response_model=ProfileEnvelopeDTO)
async def get_my_profile(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileEnvelopeDTO:
    """
    Get the caller's profile, creating it with defaults on first access.
    """
    profile, error = await profile_service.ensure_for_user(current_user.user)
    if error:
        raise create_http_exception(error)

    return ProfileEnvelopeDTO(
        success=True,
        message="Profile retrieved successfully",
        data=ProfileResponseDTO.from_profile(profile),
    )


@router.patch("/me", response_model=ProfileEnvelopeDTO)
async def update_my_profile(
    request: ProfileUpdateRequestDTO,
    controller: SessionController = Depends(get_session_controller),
) -> ProfileEnvelopeDTO:
    """
    Edit username, avatar, bio or notification preferences.
    Wallet and NFT fields are not editable here.
    """
    profile, error = await controller.update_profile(request)
    if error:
        raise create_http_exception(error)

    logger.info(f"Profile updated for {profile.id}")
    return ProfileEnvelopeDTO(
        success=True,
        message="Profile updated successfully",
        data=ProfileResponseDTO.from_profile(profile),
    )
