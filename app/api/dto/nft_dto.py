"""
DTOs for NFT endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.domain.models.nft import NftModel, NftSummary


# Request DTOs
class NftMintRequestDTO(BaseModel):
    """Request DTO for recording a minted membership NFT."""

    transaction_hash: Optional[str] = Field(None, alias="transactionHash", description="Mint transaction hash")
    token_id: Optional[int] = Field(None, alias="tokenId", description="Token ID")

    class Config:
        populate_by_name = True


class NftImageUpdateRequestDTO(BaseModel):
    """Request DTO for replacing an NFT image."""

    image_url: str = Field(..., alias="imageUrl", min_length=1, description="New image URL")

    class Config:
        populate_by_name = True


# Response DTOs
class NftStatusDataDTO(BaseModel):
    wallet_address: str = Field(..., description="Wallet that was checked")
    has_nft: bool = Field(..., description="Whether the wallet owns an NFT")


class NftStatusResponseDTO(BaseModel):
    """Response DTO for ownership checks."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[NftStatusDataDTO] = Field(None, description="Check result")


class NftResponseDTO(BaseModel):
    """NFT record as returned to clients."""

    id: str = Field(..., description="NFT record ID")
    name: str = Field(..., description="Display name")
    description: Optional[str] = Field(None, description="Description")
    image_url: Optional[str] = Field(None, description="Image URL")
    token_id: Optional[int] = Field(None, description="Token ID")
    owner_address: str = Field(..., description="Owner wallet address")
    transaction_hash: Optional[str] = Field(None, description="Mint transaction hash")

    @classmethod
    def from_record(cls, record: NftModel) -> "NftResponseDTO":
        return cls.model_validate(record.model_dump())


class NftRecordResponseDTO(BaseModel):
    """Response DTO for mint and image updates."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[NftResponseDTO] = Field(None, description="NFT record")


class NftListResponseDTO(BaseModel):
    """Response DTO for the caller's NFTs."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: List[NftSummary] = Field(default_factory=list, description="NFT summaries")
