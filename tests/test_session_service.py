import pytest

from app.api.services.session_service import (
    SessionRegistry,
    SessionState,
    reconcile_wallet,
)
from app.core.exceptions import NotAuthenticatedError
from app.domain.models.profile import ProfileModel, ProfileUpdateModel
from app.domain.models.user import AuthEvent, AuthSession, AuthUser, WalletModel

from conftest import TEST_EMAIL, TEST_TOKEN, TEST_USER_ID

pytestmark = pytest.mark.anyio("asyncio")

WALLET = "0xAbC0000000000000000000000000000000000001"
OTHER_WALLET = "0xdef0000000000000000000000000000000000002"


def _session(metadata=None, token=TEST_TOKEN) -> AuthSession:
    return AuthSession(
        access_token=token,
        user=AuthUser(id=TEST_USER_ID, email=TEST_EMAIL, user_metadata=metadata or {}),
    )


@pytest.mark.anyio
async def test_load_without_token_is_anonymous(make_controller):
    controller = make_controller()
    assert controller.state == SessionState.UNINITIALIZED

    snapshot = await controller.load(None)

    assert snapshot.state == SessionState.ANONYMOUS
    assert snapshot.user is None
    assert snapshot.wallet is None


@pytest.mark.anyio
async def test_load_with_invalid_token_is_anonymous(make_controller):
    snapshot = await make_controller().load("expired-token")
    assert snapshot.state == SessionState.ANONYMOUS


@pytest.mark.anyio
async def test_load_creates_profile_for_new_user(make_controller, profile_repo):
    snapshot = await make_controller().load(TEST_TOKEN)

    assert snapshot.state == SessionState.AUTHENTICATED
    assert snapshot.user.id == TEST_USER_ID
    assert snapshot.profile.username == "alice"
    assert snapshot.profile.has_nft is False
    assert snapshot.wallet is None
    stored, _ = await profile_repo.get(TEST_USER_ID)
    assert stored is not None


@pytest.mark.anyio
async def test_load_restores_cached_wallet(make_controller, wallet_cache):
    cached = WalletModel(address=WALLET, wallet_name="MetaMask", chain_id="0x1")
    await wallet_cache.save(TEST_USER_ID, cached)

    snapshot = await make_controller().load(TEST_TOKEN)

    assert snapshot.wallet.address == WALLET
    assert snapshot.wallet.wallet_name == "MetaMask"
    assert snapshot.wallet.chain_id == "0x1"


@pytest.mark.anyio
async def test_load_prefers_linked_profile_wallet_over_cache(make_controller, profile_svc, profile_repo, wallet_cache):
    await profile_svc.ensure_for_user(AuthUser(id=TEST_USER_ID, email=TEST_EMAIL))
    await profile_repo.update(TEST_USER_ID, {"wallet_address": WALLET})
    await wallet_cache.save(TEST_USER_ID, WalletModel(address=OTHER_WALLET))

    snapshot = await make_controller().load(TEST_TOKEN)

    assert snapshot.wallet.address == WALLET
    restored = await wallet_cache.load(TEST_USER_ID)
    assert restored.address == WALLET


def test_reconcile_keeps_cached_details_when_addresses_match():
    profile = ProfileModel(_id="u1", username="alice", wallet_address=WALLET)
    cached = WalletModel(address=WALLET.lower(), wallet_name="Rainbow", chain_id=10)

    wallet = reconcile_wallet(profile, cached)

    assert wallet is cached
    assert wallet.chain_id == "10"


def test_reconcile_without_profile_wallet_uses_first_candidate():
    profile = ProfileModel(_id="u1", username="alice")
    first = WalletModel(address=WALLET)

    assert reconcile_wallet(profile, None, first) is first
    assert reconcile_wallet(profile) is None


@pytest.mark.anyio
async def test_signed_in_adopts_metadata_wallet(make_controller, wallet_cache):
    controller = make_controller()

    snapshot = await controller.handle_auth_event(
        AuthEvent.SIGNED_IN,
        _session({"walletAddress": WALLET, "wallet_last_signed": "2024-01-02T03:04:05Z"}),
    )

    assert snapshot.state == SessionState.AUTHENTICATED
    assert snapshot.profile.wallet_address is None
    assert snapshot.wallet.address == WALLET
    assert snapshot.wallet.connected_at.year == 2024
    cached = await wallet_cache.load(TEST_USER_ID)
    assert cached.address == WALLET


@pytest.mark.anyio
async def test_token_refreshed_passes_through_loading(make_controller):
    controller = make_controller()
    await controller.load(TEST_TOKEN)
    states = []
    controller.subscribe(lambda snapshot: states.append(snapshot.state))

    await controller.handle_auth_event(AuthEvent.TOKEN_REFRESHED, _session(token="token-refreshed"))

    assert states == [SessionState.LOADING, SessionState.AUTHENTICATED]
    assert controller.access_token == "token-refreshed"


@pytest.mark.anyio
async def test_signed_out_clears_session_and_cache(make_controller, wallet_cache):
    controller = make_controller()
    await controller.load(TEST_TOKEN)
    await controller.connect_wallet({"address": WALLET})

    snapshot = await controller.handle_auth_event(AuthEvent.SIGNED_OUT, None)

    assert snapshot.state == SessionState.ANONYMOUS
    assert snapshot.user is None
    assert snapshot.profile is None
    assert snapshot.wallet is None
    assert await wallet_cache.load(TEST_USER_ID) is None


@pytest.mark.anyio
async def test_event_without_session_is_treated_as_sign_out(make_controller):
    controller = make_controller()
    await controller.load(TEST_TOKEN)

    snapshot = await controller.handle_auth_event(AuthEvent.USER_UPDATED, None)

    assert snapshot.state == SessionState.ANONYMOUS


@pytest.mark.anyio
async def test_connect_wallet_persists_to_cache(make_controller, wallet_cache, profile_repo):
    controller = make_controller()
    await controller.load(TEST_TOKEN)

    wallet, error = await controller.connect_wallet(
        {"address": WALLET, "walletName": "MetaMask", "chainId": 1}
    )

    assert error is None
    assert wallet.chain_id == "1"
    cached = await wallet_cache.load(TEST_USER_ID)
    assert cached.wallet_name == "MetaMask"
    profile, _ = await profile_repo.get(TEST_USER_ID)
    assert profile.wallet_address is None


@pytest.mark.anyio
async def test_connect_wallet_requires_address_and_session(make_controller):
    controller = make_controller()

    _, error = await controller.connect_wallet({})
    assert error is not None

    _, error = await controller.connect_wallet({"address": WALLET})
    assert isinstance(error, NotAuthenticatedError)


@pytest.mark.anyio
async def test_disconnect_wallet_clears_cache(make_controller, wallet_cache):
    controller = make_controller()
    await controller.load(TEST_TOKEN)
    await controller.connect_wallet({"address": WALLET})

    ok, error = await controller.disconnect_wallet()

    assert ok is True
    assert error is None
    assert controller.wallet is None
    assert await wallet_cache.load(TEST_USER_ID) is None


@pytest.mark.anyio
async def test_apply_unlinked_profile_drops_wallet(make_controller, profile_repo, wallet_cache):
    controller = make_controller()
    await controller.load(TEST_TOKEN)
    await controller.connect_wallet({"address": WALLET})
    unlinked, _ = await profile_repo.get(TEST_USER_ID)

    snapshot = await controller.apply_linked_profile(unlinked)

    assert snapshot.wallet is None
    assert await wallet_cache.load(TEST_USER_ID) is None


@pytest.mark.anyio
async def test_update_profile_requires_authentication(make_controller):
    controller = make_controller()
    await controller.load(None)

    profile, error = await controller.update_profile(ProfileUpdateModel(bio="hi"))

    assert profile is None
    assert isinstance(error, NotAuthenticatedError)


@pytest.mark.anyio
async def test_update_profile_refreshes_session_profile(make_controller):
    controller = make_controller()
    await controller.load(TEST_TOKEN)

    profile, error = await controller.update_profile(ProfileUpdateModel(username="ali"))

    assert error is None
    assert controller.profile.username == "ali"
    assert profile.username == "ali"


@pytest.mark.anyio
async def test_sign_out_revokes_provider_session(make_controller, auth_provider, wallet_cache):
    controller = make_controller()
    await controller.load(TEST_TOKEN)
    await controller.connect_wallet({"address": WALLET})

    ok, error = await controller.sign_out()

    assert ok is True
    assert error is None
    assert auth_provider.signed_out == [TEST_USER_ID]
    assert controller.state == SessionState.ANONYMOUS
    assert await wallet_cache.load(TEST_USER_ID) is None


@pytest.mark.anyio
async def test_unsubscribe_stops_notifications(make_controller):
    controller = make_controller()
    seen = []
    unsubscribe = controller.subscribe(seen.append)

    await controller.load(None)
    count = len(seen)
    unsubscribe()
    await controller.load(None)

    assert count > 0
    assert len(seen) == count


@pytest.mark.anyio
async def test_detect_wallet_adopts_exposed_account(make_controller):
    class Provider:
        async def get_current_account(self):
            return WALLET

    controller = make_controller()
    await controller.load(TEST_TOKEN)

    wallet = await controller.detect_wallet(Provider())

    assert wallet.address == WALLET
    assert controller.wallet.address == WALLET


@pytest.mark.anyio
async def test_registry_routes_events_by_user(make_controller):
    registry = SessionRegistry(make_controller)

    controller = await registry.handle_event(AuthEvent.SIGNED_IN, _session())
    assert registry.get(TEST_USER_ID) is controller

    await registry.handle_event(AuthEvent.SIGNED_OUT, None, user_id=TEST_USER_ID)
    assert registry.get(TEST_USER_ID) is None
    assert len(registry) == 0
