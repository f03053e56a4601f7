"""
Signature utilities for wallet ownership proofs.
"""

import secrets
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def is_valid_address(address: Optional[str]) -> bool:
    """Check the address is a 20-byte hex EVM address (any checksum casing)."""
    if not address or not isinstance(address, str):
        return False
    return Web3.is_address(address) or Web3.is_address(address.lower())


def addresses_match(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()


def recover_signer(message: str, signature: str) -> Optional[str]:
    """
    Recover the address that produced a personal_sign (EIP-191) signature.

    Args:
        message: The exact text the wallet signed
        signature: Hex signature from the wallet

    Returns:
        The checksummed signer address, or None when the signature cannot be decoded
    """
    try:
        eth_message = encode_defunct(text=message)
        return Account.recover_message(eth_message, signature=signature)
    except Exception as e:
        logger.warning("Could not recover signer from signature", error=str(e))
        return None


def verify_wallet_signature(message: str, signature: str, wallet_address: str) -> bool:
    """True when ``signature`` over ``message`` recovers to ``wallet_address``, ignoring case."""
    recovered = recover_signer(message, signature)
    is_valid = addresses_match(recovered, wallet_address)

    if not is_valid:
        logger.warning(
            "Wallet signature verification failed",
            expected=wallet_address,
            recovered=recovered,
        )
    return is_valid


def generate_nonce() -> str:
    """Generate a random nonce for a wallet challenge."""
    return secrets.token_hex(16)


def build_link_message(wallet_address: str, nonce: str, issued_at: int) -> str:
    """
    Create the challenge text a wallet signs to prove ownership.

    Args:
        wallet_address: Wallet being linked
        nonce: One-time nonce
        issued_at: Unix timestamp of issuance

    Returns:
        str: Message to be signed by the wallet
    """
    return (
        f"{settings.SIGNATURE_MESSAGE_PREFIX}\n\n"
        f"Wallet: {wallet_address}\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {issued_at}"
    )
