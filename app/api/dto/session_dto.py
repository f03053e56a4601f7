"""
DTOs for session endpoints and auth provider events.
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.api.dto.profile_dto import ProfileResponseDTO
from app.api.services.session_service import SessionSnapshot, SessionState
from app.domain.models.user import AuthEvent, AuthSession, WalletModel


# Request DTOs
class SessionLoadRequestDTO(BaseModel):
    """Request DTO for resolving a session from an access token."""

    access_token: Optional[str] = Field(None, description="Access token; omit for an anonymous session")


class AuthEventRequestDTO(BaseModel):
    """Auth provider event delivered by webhook."""

    event: AuthEvent = Field(..., description="Event type")
    session: Optional[AuthSession] = Field(None, description="Session attached to the event")
    user_id: Optional[str] = Field(None, description="User the event refers to when no session is attached")


# Response DTOs
class WalletResponseDTO(BaseModel):
    address: str = Field(..., description="Wallet address")
    wallet_name: str = Field(..., description="Wallet display name")
    chain_id: Optional[str] = Field(None, description="Chain identifier")
    connected_at: str = Field(..., description="Connection timestamp")

    @classmethod
    def from_wallet(cls, wallet: WalletModel) -> "WalletResponseDTO":
        return cls(
            address=wallet.address,
            wallet_name=wallet.wallet_name,
            chain_id=wallet.chain_id,
            connected_at=wallet.connected_at.isoformat(),
        )


class SessionDataDTO(BaseModel):
    """Session snapshot as returned to clients."""

    state: SessionState = Field(..., description="Session state")
    user_id: Optional[str] = Field(None, description="Signed-in user ID")
    email: Optional[str] = Field(None, description="Signed-in user email")
    profile: Optional[ProfileResponseDTO] = Field(None, description="User profile")
    wallet: Optional[WalletResponseDTO] = Field(None, description="Session wallet")
    error: Optional[str] = Field(None, description="Last load error")

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SessionDataDTO":
        return cls(
            state=snapshot.state,
            user_id=snapshot.user.id if snapshot.user else None,
            email=snapshot.user.email if snapshot.user else None,
            profile=ProfileResponseDTO.from_profile(snapshot.profile) if snapshot.profile else None,
            wallet=WalletResponseDTO.from_wallet(snapshot.wallet) if snapshot.wallet else None,
            error=snapshot.error,
        )


class SessionResponseDTO(BaseModel):
    """Response DTO for session endpoints."""

    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Response message")
    data: Optional[SessionDataDTO] = Field(None, description="Session snapshot")
