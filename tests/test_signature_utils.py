from eth_account import Account

from app.infrastructure.blockchain.signature_utils import (
    addresses_match,
    build_link_message,
    generate_nonce,
    is_valid_address,
    recover_signer,
    verify_wallet_signature,
)


def _sign(account, message):
    from eth_account.messages import encode_defunct

    return Account.sign_message(encode_defunct(text=message), account.key).signature.hex()


def test_is_valid_address_accepts_any_case():
    address = Account.create().address
    assert is_valid_address(address)
    assert is_valid_address(address.lower())
    assert not is_valid_address("0x1234")
    assert not is_valid_address("")
    assert not is_valid_address(None)


def test_addresses_match_ignores_case():
    address = Account.create().address
    assert addresses_match(address, address.lower())
    assert addresses_match(address.upper().replace("0X", "0x"), address)
    assert not addresses_match(address, None)


def test_recover_signer_round_trip():
    account = Account.create()
    signature = _sign(account, "hello")

    assert recover_signer("hello", signature) == account.address
    assert verify_wallet_signature("hello", signature, account.address.lower())
    assert not verify_wallet_signature("goodbye", signature, account.address)


def test_recover_signer_returns_none_for_garbage():
    assert recover_signer("hello", "0xdeadbeef") is None


def test_build_link_message_contains_nonce_and_wallet():
    nonce = generate_nonce()
    message = build_link_message("0xabc", nonce, 1700000000)

    assert len(nonce) == 32
    assert "Wallet: 0xabc" in message
    assert f"Nonce: {nonce}" in message
    assert "Issued At: 1700000000" in message
