"""
Wallet provider client.

Speaks the EIP-1193 ``request({method, params})`` contract as JSON-RPC over
HTTP to a wallet bridge. Only the methods the membership flows need are
exposed: account discovery, chain id and message signing.
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import (
    InvalidInputError,
    Result,
    UserRejectedError,
    WalletProviderError,
)
from app.core.logging import get_logger
from app.domain.models.user import WalletModel

logger = get_logger(__name__)

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001

SUPPORTED_METHODS = {
    "eth_requestAccounts",
    "eth_accounts",
    "personal_sign",
    "eth_sign",
    "eth_chainId",
}


class WalletProviderClient:
    """JSON-RPC client for an EIP-1193 wallet bridge."""

    def __init__(
        self,
        url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.WALLET_PROVIDER_URL
        self.transport = transport
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Send one provider request.

        Raises:
            UserRejectedError: The wallet owner declined (code 4001)
            WalletProviderError: Any other provider or transport failure
        """
        if method not in SUPPORTED_METHODS:
            raise WalletProviderError(f"Unsupported wallet method: {method}")

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            logger.error(f"Wallet provider request {method} failed: {exc}")
            raise WalletProviderError(f"Wallet provider unavailable: {exc}")
        except ValueError as exc:
            logger.error(f"Wallet provider returned invalid JSON for {method}: {exc}")
            raise WalletProviderError("Wallet provider returned an invalid response", {"method": method})

        if not isinstance(body, dict):
            logger.error(f"Wallet provider returned a non-object body for {method}")
            raise WalletProviderError("Wallet provider returned an invalid response", {"method": method})

        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                raise WalletProviderError(str(error), {"method": method})
            code = error.get("code")
            message = error.get("message", "Wallet provider error")
            if code == USER_REJECTED_CODE:
                raise UserRejectedError(message, {"method": method})
            raise WalletProviderError(message, {"method": method, "code": code})

        return body.get("result")

    async def connect(self, wallet_name: Optional[str] = None) -> Result[WalletModel]:
        """
        Ask the wallet for account access and report the first account.
        Gives up after ``WALLET_CONNECT_TIMEOUT_SECONDS``.
        """
        try:
            accounts = await asyncio.wait_for(
                self.request("eth_requestAccounts"),
                timeout=settings.WALLET_CONNECT_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            return None, WalletProviderError("Wallet connection timed out")
        except (UserRejectedError, WalletProviderError) as e:
            return None, e

        if not accounts:
            return None, WalletProviderError("No accounts found")

        try:
            chain_id = await self.request("eth_chainId")
        except (UserRejectedError, WalletProviderError) as e:
            logger.warning(f"Could not get chain ID: {e.message}")
            chain_id = None

        wallet = WalletModel(
            address=accounts[0],
            wallet_name=wallet_name or settings.DEFAULT_WALLET_NAME,
            chain_id=chain_id,
            connected_at=datetime.now(timezone.utc),
        )
        return wallet, None

    async def get_current_account(self) -> Optional[str]:
        """
        The account the wallet already exposes, without prompting.
        Returns None when there is none, on error, or when the wallet does not
        answer within ``WALLET_ACCOUNT_CHECK_TIMEOUT_SECONDS``.
        """
        try:
            accounts = await asyncio.wait_for(
                self.request("eth_accounts"),
                timeout=settings.WALLET_ACCOUNT_CHECK_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.info("Wallet connection check timed out")
            return None
        except (UserRejectedError, WalletProviderError) as e:
            logger.info(f"Wallet access error: {e.message}")
            return None

        return accounts[0] if accounts else None

    async def sign_message(self, address: str, message: str) -> Result[str]:
        """
        Sign ``message`` with ``address`` via personal_sign, falling back to
        eth_sign unless the user rejected the first prompt.
        """
        if not address:
            return None, InvalidInputError("Wallet address is required for signing")

        try:
            return await self.request("personal_sign", [message, address]), None
        except UserRejectedError as e:
            return None, e
        except WalletProviderError as e:
            logger.warning(f"personal_sign failed, trying eth_sign: {e.message}")

        try:
            return await self.request("eth_sign", [address, message]), None
        except (UserRejectedError, WalletProviderError) as e:
            logger.error(f"eth_sign also failed: {e.message}")
            return None, e


# Global client instance
wallet_provider_client = WalletProviderClient()
