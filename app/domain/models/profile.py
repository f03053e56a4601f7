"""
MongoDB models for membership profiles.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from app.domain.models.nft import NftSummary


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationPreferences(BaseModel):
    """Per-user notification switches."""

    email: bool = Field(default=True, description="Receive account emails")
    marketing: bool = Field(default=False, description="Receive marketing emails")


class ProfileModel(BaseModel):
    """MongoDB model for a profile. One document per auth user, keyed by user id."""

    id: str = Field(..., alias="_id", description="Auth provider user ID")
    username: str = Field(..., description="Display username")
    email: Optional[str] = Field(None, description="Email copied from the auth user")
    avatar_url: Optional[str] = Field("", description="Avatar URL")
    bio: Optional[str] = Field("", description="Short biography")
    wallet_address: Optional[str] = Field(None, description="Linked wallet address")
    has_nft: bool = Field(default=False, description="Linked wallet owns a membership NFT")
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences,
        description="Notification preferences",
    )
    nfts: List[NftSummary] = Field(
        default_factory=list, description="Embedded NFT summaries, oldest first"
    )
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    class Config:
        populate_by_name = True

    def to_document(self) -> dict:
        """Serialize for insertion, keeping the user id as ``_id``."""
        return self.model_dump(by_alias=True)


class ProfileSeedModel(BaseModel):
    """Defaults used when a profile is created lazily."""

    username: str = Field(..., description="Display username")
    email: Optional[str] = Field(None, description="Email copied from the auth user")
    avatar_url: Optional[str] = Field("", description="Avatar URL")
    bio: Optional[str] = Field("", description="Short biography")
    wallet_address: Optional[str] = Field(None, description="Initial wallet address")
    has_nft: bool = Field(default=False, description="NFT flag")
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class ProfileUpdateModel(BaseModel):
    """User-editable profile fields."""

    username: Optional[str] = Field(None, min_length=1, max_length=64, description="Display username")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    bio: Optional[str] = Field(None, max_length=500, description="Short biography")
    notifications: Optional[NotificationPreferences] = Field(
        None, description="Notification preferences"
    )

    def changes(self) -> dict:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
