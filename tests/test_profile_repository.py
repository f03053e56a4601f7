import pytest

from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ProfileNotFoundError, WalletAlreadyLinkedError
from app.domain.models.nft import NftSummary
from app.domain.models.profile import ProfileSeedModel

pytestmark = pytest.mark.anyio("asyncio")


def _seed(**overrides) -> ProfileSeedModel:
    values = {"username": "alice", "email": "alice@example.com"}
    values.update(overrides)
    return ProfileSeedModel(**values)


@pytest.mark.anyio
async def test_get_missing_profile_returns_none(profile_repo):
    profile, error = await profile_repo.get("nobody")
    assert profile is None
    assert error is None


@pytest.mark.anyio
async def test_create_does_not_overwrite_existing(profile_repo, profiles_collection):
    first, _ = await profile_repo.create("u1", _seed())
    second, error = await profile_repo.create("u1", _seed(username="someone-else"))

    assert error is None
    assert second.username == "alice"
    assert second.created_at == first.created_at
    assert len(profiles_collection.docs) == 1


@pytest.mark.anyio
async def test_create_falls_back_to_existing_on_duplicate_key(profile_repo, profiles_collection, monkeypatch):
    """A concurrent insert that wins the race is returned instead of an error."""
    await profiles_collection.insert_one({"_id": "u1", "username": "winner", "has_nft": False})

    calls = {"count": 0}
    original_get = profile_repo.get

    async def racing_get(user_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None, None
        return await original_get(user_id)

    monkeypatch.setattr(profile_repo, "get", racing_get)

    profile, error = await profile_repo.create("u1", _seed())
    assert error is None
    assert profile.username == "winner"
    assert len(profiles_collection.docs) == 1


@pytest.mark.anyio
async def test_update_ignores_protected_fields_and_normalizes_wallet(profile_repo, profiles_collection):
    created, _ = await profile_repo.create("u1", _seed())

    updated, error = await profile_repo.update(
        "u1", {"_id": "hijack", "created_at": None, "wallet_address": "0xABCdef"}
    )

    assert error is None
    assert updated.id == "u1"
    assert updated.created_at == created.created_at
    assert updated.wallet_address == "0xABCdef"
    assert updated.updated_at >= created.updated_at
    assert profiles_collection.docs[0]["wallet_address_normalized"] == "0xabcdef"


@pytest.mark.anyio
async def test_update_missing_profile_is_not_found(profile_repo):
    profile, error = await profile_repo.update("ghost", {"bio": "hi"})
    assert profile is None
    assert isinstance(error, ProfileNotFoundError)


@pytest.mark.anyio
async def test_find_by_wallet_address_ignores_case(profile_repo):
    await profile_repo.create("u1", _seed(wallet_address="0xAbC0000000000000000000000000000000000001"))

    owner, error = await profile_repo.find_by_wallet_address("0xabc0000000000000000000000000000000000001")
    assert error is None
    assert owner.id == "u1"


@pytest.mark.anyio
async def test_append_nft_sets_flag(profile_repo):
    await profile_repo.create("u1", _seed())
    summary = NftSummary(id="n1", name="Membership", owner_address="0xabc")

    profile, error = await profile_repo.append_nft("u1", summary)

    assert error is None
    assert profile.has_nft is True
    assert [nft.id for nft in profile.nfts] == ["n1"]


@pytest.mark.anyio
async def test_wallet_index_is_unique_and_skips_profiles_without_wallet(profile_repo, profiles_collection):
    await profile_repo._create_indexes()

    keys, options = profiles_collection.indexes[0]
    assert keys == [("wallet_address_normalized", 1)]
    assert options["unique"] is True
    assert options["partialFilterExpression"] == {"wallet_address_normalized": {"$type": "string"}}
    assert "sparse" not in options


@pytest.mark.anyio
async def test_update_maps_wallet_conflict_at_store(profile_repo, profiles_collection, monkeypatch):
    """A link that loses the race against the unique index reports the wallet as taken."""
    await profile_repo.create("u1", _seed())

    async def conflicting_update(query, update, return_document=None):
        raise DuplicateKeyError("E11000 duplicate key error index: wallet_address_index")

    monkeypatch.setattr(profiles_collection, "find_one_and_update", conflicting_update)

    profile, error = await profile_repo.update("u1", {"wallet_address": "0xAbC0000000000000000000000000000000000001"})

    assert profile is None
    assert isinstance(error, WalletAlreadyLinkedError)
    assert error.error_code == "WALLET_ALREADY_LINKED"
    assert profiles_collection.docs[0]["wallet_address_normalized"] is None
