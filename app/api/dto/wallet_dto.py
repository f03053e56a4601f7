"""
DTOs for wallet link and session wallet endpoints.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field

from app.api.dto.profile_dto import ProfileResponseDTO


# Request DTOs
class LinkWalletRequestDTO(BaseModel):
    """Request DTO for linking a wallet to the caller's profile."""

    wallet_address: str = Field(..., alias="walletAddress", description="Wallet address")
    signed_message: str = Field(..., alias="signedMessage", description="Message that was signed")
    signature: str = Field(..., description="Hex signature over the message")

    class Config:
        populate_by_name = True


class ConnectWalletRequestDTO(BaseModel):
    """Request DTO for connecting a wallet to the session without linking it."""

    address: str = Field(..., min_length=1, description="Wallet address")
    wallet_name: Optional[str] = Field(None, alias="walletName", description="Wallet display name")
    chain_id: Optional[Union[str, int]] = Field(None, alias="chainId", description="Chain identifier")

    class Config:
        populate_by_name = True


# Response DTOs
class WalletChallengeDataDTO(BaseModel):
    """Challenge message the wallet must sign."""

    wallet_address: str = Field(..., alias="walletAddress", description="Wallet address")
    message: str = Field(..., description="Message to sign")
    expires_in: int = Field(..., alias="expiresIn", description="Seconds until the challenge expires")

    class Config:
        populate_by_name = True


class WalletChallengeResponseDTO(BaseModel):
    """Response DTO for challenge requests."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[WalletChallengeDataDTO] = Field(None, description="Challenge data")


class WalletLinkResponseDTO(BaseModel):
    """Response DTO for link and unlink."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[ProfileResponseDTO] = Field(None, description="Profile after the change")
