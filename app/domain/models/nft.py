"""
MongoDB models for NFT records.
"""

from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


class NftSummary(BaseModel):
    """NFT summary embedded in a profile document."""

    id: str = Field(..., description="NFT record ID")
    name: str = Field(..., description="Display name")
    image_url: Optional[str] = Field(None, description="Image URL")
    token_id: Optional[int] = Field(None, description="Token ID")
    owner_address: str = Field(..., description="Owner wallet address")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")


class NftModel(BaseModel):
    """MongoDB model for an NFT record owned by a wallet."""

    id: Optional[str] = Field(None, alias="_id", description="MongoDB document ID")
    user_id: Optional[str] = Field(None, description="User who recorded the NFT")
    name: str = Field(..., description="Display name")
    description: Optional[str] = Field(None, description="Description")
    image_url: Optional[str] = Field(None, description="Image URL")
    token_id: Optional[int] = Field(None, description="Token ID")
    owner_address: str = Field(..., description="Owner wallet address as given")
    owner_address_normalized: Optional[str] = Field(
        None, description="Lower-cased owner address used for lookups"
    )
    transaction_hash: Optional[str] = Field(None, description="Mint transaction hash")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v):
        """Convert MongoDB ObjectId to string."""
        if isinstance(v, ObjectId):
            return str(v)
        return v

    class Config:
        populate_by_name = True

    def to_summary(self) -> NftSummary:
        return NftSummary(
            id=self.id,
            name=self.name,
            image_url=self.image_url,
            token_id=self.token_id,
            owner_address=self.owner_address,
            created_at=self.created_at,
        )


class NftCreateModel(BaseModel):
    """Model for recording a new NFT."""

    user_id: Optional[str] = Field(None, description="User who recorded the NFT")
    name: str = Field(..., description="Display name")
    description: Optional[str] = Field(None, description="Description")
    image_url: Optional[str] = Field(None, description="Image URL")
    token_id: Optional[int] = Field(None, description="Token ID")
    owner_address: str = Field(..., description="Owner wallet address")
    transaction_hash: Optional[str] = Field(None, description="Mint transaction hash")
