import httpx
import pytest

from app.core.exceptions import AuthProviderError, NotAuthenticatedError
from app.infrastructure.auth.auth_provider_client import HostedAuthClient

from conftest import AUTH_BASE_URL, TEST_TOKEN, TEST_USER_ID

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_get_user_sends_bearer_and_api_key(auth_client, auth_provider):
    user, error = await auth_client.get_user(TEST_TOKEN)

    assert error is None
    assert user.id == TEST_USER_ID
    request = auth_provider.requests[-1]
    assert request.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
    assert request.headers["apikey"] == "anon-key"


@pytest.mark.anyio
async def test_get_session_with_invalid_token_is_empty(auth_client):
    session, error = await auth_client.get_session("bogus")
    assert session is None
    assert error is None


@pytest.mark.anyio
async def test_get_user_invalid_token(auth_client):
    user, error = await auth_client.get_user("bogus")
    assert user is None
    assert isinstance(error, NotAuthenticatedError)


@pytest.mark.anyio
async def test_update_user_metadata_merges(auth_client, auth_provider):
    user, error = await auth_client.update_user_metadata(TEST_TOKEN, {"walletAddress": "0xabc"})

    assert error is None
    assert user.metadata_wallet_address == "0xabc"


@pytest.mark.anyio
async def test_provider_outage_is_reported():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    client = HostedAuthClient(base_url=AUTH_BASE_URL, transport=httpx.MockTransport(handler))

    session, error = await client.get_session(TEST_TOKEN)

    assert session is None
    assert isinstance(error, AuthProviderError)


@pytest.mark.anyio
async def test_server_error_is_provider_error():
    client = HostedAuthClient(
        base_url=AUTH_BASE_URL,
        transport=httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable")),
    )

    ok, error = await client.sign_out(TEST_TOKEN)

    assert ok is False
    assert isinstance(error, AuthProviderError)
    assert error.details["status_code"] == 503
