"""
External service integration for the hosted auth provider.

Talks to a GoTrue-compatible REST API: resolving the user behind an access
token, updating user metadata and revoking sessions.
"""

from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import AuthProviderError, NotAuthenticatedError, Result
from app.core.logging import get_logger
from app.domain.models.user import AuthSession, AuthUser

logger = get_logger(__name__)


class HostedAuthClient:
    """Client for the hosted auth provider."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.AUTH_PROVIDER_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.AUTH_PROVIDER_API_KEY
        self.transport = transport

    def _headers(self, access_token: str) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "User-Agent": "TB12-Membership-Backend/1.0",
        }
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.AUTH_PROVIDER_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    async def _request(
        self, method: str, path: str, access_token: str, json: Optional[Dict[str, Any]] = None
    ) -> Result[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.request(
                    method, path, json=json, headers=self._headers(access_token)
                )
        except httpx.TimeoutException:
            logger.error(f"Auth provider timeout on {method} {path}")
            return None, AuthProviderError("Authentication service timeout")
        except httpx.HTTPError as exc:
            logger.error(f"Failed to reach auth provider: {exc}")
            return None, AuthProviderError("Authentication service unavailable")

        if response.status_code in (401, 403):
            return None, NotAuthenticatedError("Invalid or expired access token")
        if response.status_code >= 400:
            logger.error(
                f"Auth provider {method} {path} failed with status {response.status_code}: {response.text}"
            )
            return None, AuthProviderError(
                f"Auth provider returned {response.status_code}",
                {"status_code": response.status_code},
            )

        if response.status_code == 204 or not response.content:
            return {}, None
        return response.json(), None

    async def get_user(self, access_token: str) -> Result[AuthUser]:
        """Resolve the user that owns ``access_token``."""
        if not access_token:
            return None, NotAuthenticatedError("Access token is required")

        data, error = await self._request("GET", "/auth/v1/user", access_token)
        if error:
            return None, error
        return AuthUser.model_validate(data), None

    async def get_session(self, access_token: str) -> Result[AuthSession]:
        """
        Current session for an access token.

        Returns:
            (session, None); (None, None) when the token is no longer valid;
            (None, AuthProviderError) when the provider could not be reached
        """
        user, error = await self.get_user(access_token)
        if isinstance(error, NotAuthenticatedError):
            return None, None
        if error:
            return None, error
        return AuthSession(access_token=access_token, user=user), None

    async def update_user_metadata(self, access_token: str, data: Dict[str, Any]) -> Result[AuthUser]:
        """Merge ``data`` into the user's metadata."""
        payload, error = await self._request(
            "PUT", "/auth/v1/user", access_token, json={"data": data}
        )
        if error:
            return None, error
        return AuthUser.model_validate(payload), None

    async def sign_out(self, access_token: str) -> Result[bool]:
        """Revoke the session behind ``access_token``."""
        _, error = await self._request("POST", "/auth/v1/logout", access_token)
        if error:
            return False, error
        return True, None


# Global client instance
hosted_auth_client = HostedAuthClient()
