"""
Authentication Guard for FastAPI.
Validates bearer access tokens against the hosted auth provider with a short in-memory cache.
"""

import hmac
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.services.session_service import SessionController, SessionRegistry
from app.core.config import settings
from app.core.exceptions import NotAuthenticatedError, create_http_exception
from app.core.logging import get_logger
from app.domain.models.user import AuthUser
from app.infrastructure.auth.auth_provider_client import (
    HostedAuthClient,
    hosted_auth_client,
)

logger = get_logger(__name__)

# Security scheme for access tokens
security = HTTPBearer(auto_error=False)


class AuthenticatedUser:
    """Authenticated user data structure."""

    def __init__(self, user: AuthUser, access_token: str):
        self.user = user
        self.access_token = access_token

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def email(self) -> Optional[str]:
        return self.user.email


class AuthGuard:
    """Access token validation with caching."""

    def __init__(self, auth_client: Optional[HostedAuthClient] = None):
        self.auth_client = auth_client or hosted_auth_client
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.cache_ttl = settings.AUTH_TOKEN_CACHE_SECONDS * 1000  # milliseconds

    async def validate_access_token(self, access_token: str) -> AuthenticatedUser:
        """Validate access token with the auth provider."""
        cached = self.cache.get(access_token)
        if cached and cached["expires_at"] > datetime.now().timestamp() * 1000:
            return cached["user"]

        user, error = await self.auth_client.get_user(access_token)
        if error:
            self.cache.pop(access_token, None)
            raise create_http_exception(error)

        authenticated = AuthenticatedUser(user=user, access_token=access_token)
        self.cache[access_token] = {
            "user": authenticated,
            "expires_at": datetime.now().timestamp() * 1000 + self.cache_ttl,
        }
        return authenticated

    async def authenticate(
        self, request: Request, credentials: Optional[HTTPAuthorizationCredentials]
    ) -> AuthenticatedUser:
        """Main authentication method."""
        if not credentials or not credentials.credentials:
            raise create_http_exception(NotAuthenticatedError("Access token is required"))

        user = await self.validate_access_token(credentials.credentials)
        logger.info(f"User {user.user_id} accessed {request.method} {request.url.path}")
        return user

    def forget(self, access_token: str) -> None:
        self.cache.pop(access_token, None)

    def clear_cache(self) -> None:
        """Clear in-memory cache."""
        self.cache.clear()

    def get_cache_size(self) -> int:
        """Get cache size."""
        return len(self.cache)


# Global guard instance
auth_guard = AuthGuard()


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    FastAPI dependency to get current authenticated user.

    Raises:
        HTTPException: 401 when the token is missing or rejected, 502 when the
            auth provider cannot be reached
    """
    return await auth_guard.authenticate(request, credentials)


async def get_optional_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Bearer token if one was sent, without validating it."""
    if not credentials:
        return None
    return credentials.credentials or None


def get_session_registry(request: Request) -> SessionRegistry:
    """Session registry owned by the running application."""
    return request.app.state.session_registry


async def get_session_controller(
    current_user: AuthenticatedUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionController:
    """
    Live session for the caller. A session that was never loaded on this
    instance is loaded from the caller's token.
    """
    controller = registry.get(current_user.user_id)
    if controller is None:
        controller = await registry.load(current_user.access_token)
    if not controller.is_authenticated:
        raise create_http_exception(NotAuthenticatedError("Session is not authenticated"))
    return controller


async def verify_webhook_secret(request: Request) -> None:
    """
    Reject auth-event webhooks without the shared secret. With no secret
    configured every delivery is rejected.
    """
    if not settings.AUTH_WEBHOOK_SECRET:
        logger.warning("Rejected auth event: AUTH_WEBHOOK_SECRET is not configured")
        raise HTTPException(
            status_code=401,
            detail={
                "error_code": "WEBHOOK_NOT_CONFIGURED",
                "message": "Auth event webhook is not configured",
                "details": {},
            },
        )

    provided = request.headers.get("X-Webhook-Secret", "")
    if not hmac.compare_digest(provided, settings.AUTH_WEBHOOK_SECRET):
        logger.warning("Rejected auth event with invalid webhook secret")
        raise HTTPException(
            status_code=401,
            detail={
                "error_code": "INVALID_WEBHOOK_SECRET",
                "message": "Invalid webhook secret",
                "details": {},
            },
        )
