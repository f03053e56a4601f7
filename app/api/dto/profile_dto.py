"""
DTOs for profile endpoints.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.domain.models.nft import NftSummary
from app.domain.models.profile import (
    NotificationPreferences,
    ProfileModel,
    ProfileUpdateModel,
)


# Request DTOs
class ProfileUpdateRequestDTO(ProfileUpdateModel):
    """Request DTO for editing the caller's profile."""


# Response DTOs
class ProfileResponseDTO(BaseModel):
    """Profile as returned to clients."""

    id: str = Field(..., description="Auth provider user ID")
    username: str = Field(..., description="Display username")
    email: Optional[str] = Field(None, description="User email")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    bio: Optional[str] = Field(None, description="Short biography")
    wallet_address: Optional[str] = Field(None, description="Linked wallet address")
    has_nft: bool = Field(..., description="Linked wallet owns a membership NFT")
    notifications: NotificationPreferences = Field(..., description="Notification preferences")
    nfts: List[NftSummary] = Field(default_factory=list, description="Embedded NFT summaries")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_profile(cls, profile: ProfileModel) -> "ProfileResponseDTO":
        return cls.model_validate(profile.model_dump())


class ProfileEnvelopeDTO(BaseModel):
    """Response DTO for profile endpoints."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[ProfileResponseDTO] = Field(None, description="Profile data")
