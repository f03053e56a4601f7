"""
MongoDB repository for membership profiles.

Every public method returns a ``(value, error)`` pair; driver failures are
wrapped in ``StoreError`` instead of propagating.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import get_mongodb_database_name, get_mongodb_url, settings
from app.core.exceptions import (
    ProfileNotFoundError,
    Result,
    StoreError,
    WalletAlreadyLinkedError,
)
from app.core.logging import get_logger, log_profile_operation
from app.domain.models.nft import NftSummary
from app.domain.models.profile import ProfileModel, ProfileSeedModel

logger = get_logger(__name__)

# Fields the store manages itself and callers may not overwrite
PROTECTED_FIELDS = {"_id", "id", "created_at"}


def normalize_address(address: Optional[str]) -> Optional[str]:
    return address.lower() if address else None


class ProfileRepository:
    """Repository for profiles in MongoDB."""

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """
        Initialize the repository.

        Args:
            collection: Pre-built collection, mainly for tests. When omitted the
                repository connects lazily using the configured MongoDB URL.
        """
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = collection
        self._initialized = collection is not None

    async def initialize(self):
        """Initialize MongoDB connection and collection."""
        if self._initialized:
            return

        try:
            database_name = get_mongodb_database_name()
            self.client = AsyncIOMotorClient(get_mongodb_url())
            self.database = self.client[database_name]
            self.collection = self.database[settings.PROFILES_COLLECTION]

            await self._create_indexes()

            self._initialized = True
            logger.info(f"ProfileRepository initialized with database: {database_name}")

        except Exception as e:
            logger.error(f"Failed to initialize ProfileRepository: {e}")
            raise

    async def _create_indexes(self):
        """Create the unique wallet index. Profiles without a wallet store null and are left out of it."""
        try:
            await self.collection.create_index(
                [("wallet_address_normalized", ASCENDING)],
                name="wallet_address_index",
                unique=True,
                partialFilterExpression={"wallet_address_normalized": {"$type": "string"}},
            )
            logger.info("Profile indexes created successfully")
        except Exception as e:
            logger.error(f"Failed to create indexes: {e}")

    async def close(self):
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self._initialized = False
            logger.info("Disconnected from MongoDB")

    async def get(self, user_id: str) -> Result[ProfileModel]:
        """
        Get a profile by user ID.

        Returns:
            (profile, None), (None, None) when absent, or (None, StoreError)
        """
        try:
            await self.initialize()
            doc = await self.collection.find_one({"_id": user_id})
            return (ProfileModel(**doc) if doc else None), None
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Failed to get profile {user_id}: {e}")
            return None, StoreError(f"Failed to get profile: {e}", {"user_id": user_id})

    async def create(self, user_id: str, seed: ProfileSeedModel) -> Result[ProfileModel]:
        """
        Create a profile unless one already exists.

        The read-before-write keeps repeated calls idempotent. Two concurrent
        callers can both miss on the read; the loser's insert hits the ``_id``
        unique constraint and falls back to returning the winner's document.
        """
        existing, error = await self.get(user_id)
        if error:
            return None, error
        if existing:
            return existing, None

        profile = ProfileModel(_id=user_id, **seed.model_dump())
        document = profile.to_document()
        document["wallet_address_normalized"] = normalize_address(profile.wallet_address)

        try:
            await self.collection.insert_one(document)
            log_profile_operation("create", user_id, username=profile.username)
            return profile, None
        except DuplicateKeyError:
            logger.warning(f"Profile for {user_id} created concurrently, reading it back")
            existing, error = await self.get(user_id)
            if error:
                return None, error
            if existing is None:
                return None, StoreError("Profile insert conflicted but no profile found", {"user_id": user_id})
            return existing, None
        except PyMongoError as e:
            logger.error(f"Failed to create profile {user_id}: {e}")
            return None, StoreError(f"Failed to create profile: {e}", {"user_id": user_id})

    async def update(self, user_id: str, fields: Dict[str, Any]) -> Result[ProfileModel]:
        """
        Apply a partial update and stamp ``updated_at``.

        Returns:
            (updated profile, None), or (None, ProfileNotFoundError | StoreError)
        """
        changes = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}
        if "wallet_address" in changes:
            changes["wallet_address_normalized"] = normalize_address(changes["wallet_address"])
        changes["updated_at"] = datetime.now(timezone.utc)

        return await self._find_and_update(user_id, {"$set": changes}, "update")

    async def append_nft(self, user_id: str, summary: NftSummary) -> Result[ProfileModel]:
        """Append an NFT summary to the embedded list and mark the profile as holding one."""
        update = {
            "$push": {"nfts": summary.model_dump()},
            "$set": {"has_nft": True, "updated_at": datetime.now(timezone.utc)},
        }
        return await self._find_and_update(user_id, update, "append_nft")

    async def set_nfts(self, user_id: str, nfts: List[NftSummary]) -> Result[ProfileModel]:
        """Replace the embedded NFT list."""
        return await self.update(user_id, {"nfts": [nft.model_dump() for nft in nfts]})

    async def find_by_wallet_address(self, wallet_address: str) -> Result[ProfileModel]:
        """Find the profile a wallet is linked to, ignoring address case."""
        try:
            await self.initialize()
            doc = await self.collection.find_one(
                {"wallet_address_normalized": normalize_address(wallet_address)}
            )
            return (ProfileModel(**doc) if doc else None), None
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Failed to look up wallet {wallet_address}: {e}")
            return None, StoreError(f"Failed to look up wallet: {e}", {"wallet_address": wallet_address})

    async def _find_and_update(
        self, user_id: str, update: Dict[str, Any], operation: str
    ) -> Result[ProfileModel]:
        try:
            await self.initialize()
            doc = await self.collection.find_one_and_update(
                {"_id": user_id},
                update,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            wallet_address = update.get("$set", {}).get("wallet_address")
            logger.warning(f"Wallet {wallet_address} is already linked to another profile")
            return None, WalletAlreadyLinkedError(wallet_address, {"user_id": user_id})
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Failed to {operation} profile {user_id}: {e}")
            return None, StoreError(f"Failed to {operation} profile: {e}", {"user_id": user_id})

        if not doc:
            return None, ProfileNotFoundError(user_id)

        log_profile_operation(operation, user_id, fields=sorted(update.get("$set", {}).keys()))
        return ProfileModel(**doc), None


# Global repository instance
profile_repository = ProfileRepository()
