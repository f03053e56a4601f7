"""
Custom exceptions for the TB12 Membership Backend.
Provides structured error handling for profile reconciliation and wallet linking.

Services hand these back in the error slot of a ``(value, error)`` tuple;
routers convert them into HTTP responses.
"""

from typing import Any, Dict, Optional, Tuple, TypeVar

from fastapi import HTTPException, status

T = TypeVar("T")


class MembershipError(Exception):
    """Base exception for the membership backend."""

    def __init__(
        self,
        message: str,
        error_code: str = "MEMBERSHIP_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# (value, error) pair returned across component boundaries
Result = Tuple[Optional[T], Optional[MembershipError]]


# Input validation
class InvalidInputError(MembershipError):
    """Raised when a required field is missing or empty."""

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_INPUT", details)


class InvalidWalletAddressError(InvalidInputError):
    """Raised when an invalid wallet address is provided."""

    def __init__(self, wallet_address: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Invalid wallet address: {wallet_address}", details)
        self.error_code = "INVALID_WALLET_ADDRESS"


# Authentication
class NotAuthenticatedError(MembershipError):
    """Raised when an operation needs a signed-in user."""

    def __init__(self, message: str = "Not authenticated", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_AUTHENTICATED", details)


class AuthProviderError(MembershipError):
    """Raised when the hosted auth provider rejects or fails a call."""

    def __init__(self, message: str = "Auth provider request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTH_PROVIDER_ERROR", details)


# Wallet linking
class SignatureMismatchError(MembershipError):
    """Raised when a signature does not recover to the claimed wallet."""

    def __init__(self, wallet_address: str, details: Optional[Dict[str, Any]] = None):
        message = f"Signature does not match wallet: {wallet_address}"
        super().__init__(message, "SIGNATURE_MISMATCH", details)


class WalletAlreadyLinkedError(MembershipError):
    """Raised when a wallet is already linked to a different user."""

    def __init__(self, wallet_address: str, details: Optional[Dict[str, Any]] = None):
        message = f"Wallet already linked to another account: {wallet_address}"
        super().__init__(message, "WALLET_ALREADY_LINKED", details)


class NonceExpiredError(MembershipError):
    """Raised when a wallet challenge is missing, consumed or expired."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__("Wallet challenge has expired", "NONCE_EXPIRED", details)


# Wallet provider
class UserRejectedError(MembershipError):
    """Raised when the wallet owner declines a connection or signature."""

    def __init__(self, message: str = "User rejected the request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "USER_REJECTED", details)


class WalletProviderError(MembershipError):
    """Raised when the wallet provider fails for any other reason."""

    def __init__(self, message: str = "Wallet provider request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "WALLET_PROVIDER_ERROR", details)


# Storage
class StoreError(MembershipError):
    """Raised when the database or cache fails."""

    def __init__(self, message: str = "Store operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORE_ERROR", details)


class ProfileNotFoundError(MembershipError):
    """Raised when a profile is not found."""

    def __init__(self, user_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Profile not found: {user_id}", "PROFILE_NOT_FOUND", details)


class NftNotFoundError(MembershipError):
    """Raised when an NFT record is not found for the user."""

    def __init__(self, nft_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"NFT not found: {nft_id}", "NFT_NOT_FOUND", details)


def create_http_exception(
    exc: MembershipError,
    status_code: Optional[int] = None
) -> HTTPException:
    """
    Convert a MembershipError to an HTTPException.

    Args:
        exc: MembershipError instance
        status_code: HTTP status code, derived from the error code when omitted

    Returns:
        HTTPException: FastAPI HTTP exception
    """
    return HTTPException(
        status_code=status_code or get_exception_status_code(exc),
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


def get_exception_status_code(exc: MembershipError) -> int:
    """
    Get the appropriate HTTP status code for a MembershipError.

    Args:
        exc: MembershipError instance

    Returns:
        int: HTTP status code
    """
    status_mapping = {
        "INVALID_INPUT": status.HTTP_400_BAD_REQUEST,
        "INVALID_WALLET_ADDRESS": status.HTTP_400_BAD_REQUEST,

        "NOT_AUTHENTICATED": status.HTTP_401_UNAUTHORIZED,
        "AUTH_PROVIDER_ERROR": status.HTTP_502_BAD_GATEWAY,

        "SIGNATURE_MISMATCH": status.HTTP_401_UNAUTHORIZED,
        "WALLET_ALREADY_LINKED": status.HTTP_409_CONFLICT,
        "NONCE_EXPIRED": status.HTTP_400_BAD_REQUEST,

        "USER_REJECTED": status.HTTP_400_BAD_REQUEST,
        "WALLET_PROVIDER_ERROR": status.HTTP_502_BAD_GATEWAY,

        "STORE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "PROFILE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "NFT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    }

    return status_mapping.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
