"""
Auth provider user, session and wallet models.
The user and session are owned by the hosted auth provider; the wallet is session-local.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class AuthUser(BaseModel):
    """User as reported by the hosted auth provider."""

    id: str = Field(..., description="Auth provider user ID")
    email: Optional[str] = Field(None, description="User email")
    user_metadata: Dict[str, Any] = Field(default_factory=dict, description="Mutable metadata")

    class Config:
        extra = "ignore"

    @property
    def metadata_wallet_address(self) -> Optional[str]:
        return self.user_metadata.get("walletAddress") or None


class AuthSession(BaseModel):
    """Session payload delivered with auth events."""

    access_token: Optional[str] = Field(None, description="Access token (JWT)")
    refresh_token: Optional[str] = Field(None, description="Refresh token")
    expires_at: Optional[int] = Field(None, description="Expiry as unix seconds")
    user: AuthUser = Field(..., description="Signed-in user")

    class Config:
        extra = "ignore"


class AuthEvent(str, Enum):
    """Events emitted by the hosted auth provider."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    INITIAL_SESSION = "INITIAL_SESSION"


class WalletModel(BaseModel):
    """
    Session wallet. Serialized to the wallet cache with the camelCase keys
    the frontend reads (``walletName``, ``chainId``, ``connectedAt``).
    """

    address: str = Field(..., min_length=1, description="Wallet address")
    wallet_name: str = Field("Web3 Wallet", alias="walletName", description="Wallet display name")
    chain_id: Optional[str] = Field(None, alias="chainId", description="Chain identifier")
    connected_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="connectedAt",
        description="Connection timestamp",
    )

    @field_validator("chain_id", mode="before")
    @classmethod
    def stringify_chain_id(cls, v):
        """Wallets report chain ids as hex strings or integers."""
        if isinstance(v, int):
            return str(v)
        return v or None

    class Config:
        populate_by_name = True
        extra = "ignore"

    def to_cache(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
