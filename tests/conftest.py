import copy
import json
import os
import sys
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import pytest
from asgi_lifespan import LifespanManager
from bson import ObjectId
from eth_account import Account
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app.main import app  # noqa: E402
from app.api.deps.auth_guard import auth_guard  # noqa: E402
from app.api.services.nft_service import NftService  # noqa: E402
from app.api.services.profile_service import ProfileService  # noqa: E402
from app.api.services.session_service import SessionController  # noqa: E402
from app.api.services.wallet_link_service import (  # noqa: E402
    WalletChallengeService,
    WalletLinkService,
)
from app.domain.repositories.nft_repository import (  # noqa: E402
    NftRepository,
    nft_repository,
)
from app.domain.repositories.profile_repository import (  # noqa: E402
    ProfileRepository,
    profile_repository,
)
from app.infrastructure.auth.auth_provider_client import (  # noqa: E402
    HostedAuthClient,
    hosted_auth_client,
)
from app.infrastructure.cache import CacheService, WalletCache, cache_service  # noqa: E402

AUTH_BASE_URL = "https://auth.test"
TEST_TOKEN = "token-alice"
TEST_USER_ID = "user-alice"
TEST_EMAIL = "alice@example.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeCursor:
    """Just enough of a motor cursor for sort/limit/to_list."""

    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._docs.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._docs = self._docs[:count]
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """In-memory stand-in for a motor collection supporting equality filters."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.indexes: List[Any] = []

    @staticmethod
    def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
        return all(doc.get(key) == value for key, value in query.items())

    def _find(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for doc in self.docs:
            if self._matches(doc, query):
                return doc
        return None

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name", "index")

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self._find(query)
        return copy.deepcopy(doc) if doc else None

    async def insert_one(self, document: Dict[str, Any]):
        if "_id" not in document:
            document["_id"] = ObjectId()
        if self._find({"_id": document["_id"]}):
            raise DuplicateKeyError(f"duplicate _id {document['_id']}")
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one_and_update(
        self, query, update, return_document=ReturnDocument.BEFORE
    ):
        doc = self._find(query)
        if doc is None:
            return None
        before = copy.deepcopy(doc)
        for key, value in update.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)
        for key, value in update.get("$push", {}).items():
            doc.setdefault(key, []).append(copy.deepcopy(value))
        return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return sum(1 for doc in self.docs if self._matches(doc, query))

    def find(self, query: Dict[str, Any]) -> FakeCursor:
        return FakeCursor([copy.deepcopy(doc) for doc in self.docs if self._matches(doc, query)])


class FakeRedis:
    """Mirrors RedisClient: values go through JSON like the real client."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.expiry: Dict[str, Any] = {}

    async def get(self, key: str):
        value = self.store.get(key)
        return json.loads(value) if value is not None else None

    async def set(self, key: str, value: Any, expire=None) -> bool:
        self.store[key] = json.dumps(value, default=str)
        self.expiry[key] = expire
        return True

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.store


class FakeAuthProvider:
    """GoTrue-style auth API served through httpx.MockTransport."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.fail_metadata_updates = False
        self.signed_out: List[str] = []

    def add_user(self, token: str, user_id: str, email: Optional[str], metadata=None):
        self.users[user_id] = {
            "id": user_id,
            "email": email,
            "user_metadata": dict(metadata or {}),
        }
        self.tokens[token] = user_id
        return self.users[user_id]

    def _user_for(self, request: httpx.Request) -> Optional[Dict[str, Any]]:
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        user_id = self.tokens.get(token)
        return self.users.get(user_id) if user_id else None

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        user = self._user_for(request)
        if user is None:
            return httpx.Response(401, json={"msg": "invalid JWT"})

        if request.method == "GET" and request.url.path == "/auth/v1/user":
            return httpx.Response(200, json=user)
        if request.method == "PUT" and request.url.path == "/auth/v1/user":
            if self.fail_metadata_updates:
                return httpx.Response(500, json={"msg": "boom"})
            body = json.loads(request.content)
            user["user_metadata"].update(body.get("data", {}))
            return httpx.Response(200, json=user)
        if request.method == "POST" and request.url.path == "/auth/v1/logout":
            self.signed_out.append(user["id"])
            return httpx.Response(204)
        return httpx.Response(404, json={"msg": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def profiles_collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def nfts_collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    provider = FakeAuthProvider()
    provider.add_user(TEST_TOKEN, TEST_USER_ID, TEST_EMAIL)
    return provider


@pytest.fixture
def profile_repo(profiles_collection) -> ProfileRepository:
    return ProfileRepository(collection=profiles_collection)


@pytest.fixture
def nft_repo(nfts_collection) -> NftRepository:
    return NftRepository(collection=nfts_collection)


@pytest.fixture
def cache(fake_redis) -> CacheService:
    service = CacheService()
    service._redis_client = fake_redis
    return service


@pytest.fixture
def wallet_cache(cache) -> WalletCache:
    return WalletCache(cache)


@pytest.fixture
def auth_client(auth_provider) -> HostedAuthClient:
    return HostedAuthClient(
        base_url=AUTH_BASE_URL, api_key="anon-key", transport=auth_provider.transport
    )


@pytest.fixture
def profile_svc(profile_repo) -> ProfileService:
    return ProfileService(profile_repo)


@pytest.fixture
def nft_svc(profile_repo, nft_repo) -> NftService:
    return NftService(profiles=profile_repo, nfts=nft_repo)


@pytest.fixture
def link_service(profile_repo, profile_svc, nft_svc, auth_client) -> WalletLinkService:
    return WalletLinkService(
        profiles=profile_repo, ensurer=profile_svc, nfts=nft_svc, auth_client=auth_client
    )


@pytest.fixture
def challenge_service(cache) -> WalletChallengeService:
    return WalletChallengeService(cache)


@pytest.fixture
def make_controller(auth_client, profile_svc, wallet_cache):
    def _make() -> SessionController:
        return SessionController(
            auth_client=auth_client, profiles=profile_svc, wallet_cache=wallet_cache
        )

    return _make


@pytest.fixture
def wallet_account():
    """A throwaway key pair for signing link messages."""
    return Account.create()


@pytest.fixture
def sign_message():
    def _sign(account, message: str) -> str:
        signed = Account.sign_message(encode_defunct(text=message), account.key)
        return "0x" + signed.signature.hex().removeprefix("0x")

    return _sign


@pytest.fixture
async def async_client(
    monkeypatch, profiles_collection, nfts_collection, fake_redis, auth_provider
):
    """
    HTTPX async client with FastAPI lifespan handling. The global repositories,
    cache and auth client are pointed at in-memory fakes.
    """
    monkeypatch.setattr(profile_repository, "collection", profiles_collection)
    monkeypatch.setattr(profile_repository, "_initialized", True)
    monkeypatch.setattr(nft_repository, "collection", nfts_collection)
    monkeypatch.setattr(cache_service, "_redis_client", fake_redis)
    monkeypatch.setattr(hosted_auth_client, "base_url", AUTH_BASE_URL)
    monkeypatch.setattr(hosted_auth_client, "transport", auth_provider.transport)
    auth_guard.clear_cache()

    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport,
            base_url="http://testserver",
            headers={"Authorization": f"Bearer {TEST_TOKEN}"},
        ) as client:
            yield client

    auth_guard.clear_cache()
