"""
NFT Repository for MongoDB operations.
Handles lookups of NFT records by owner wallet and by user.
"""

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from app.core.config import get_mongodb_database_name, get_mongodb_url, settings
from app.core.exceptions import NftNotFoundError, Result, StoreError
from app.core.logging import get_logger
from app.domain.models.nft import NftCreateModel, NftModel
from app.domain.repositories.profile_repository import normalize_address

logger = get_logger(__name__)


def _to_object_id(nft_id: str):
    try:
        return ObjectId(nft_id)
    except (InvalidId, TypeError):
        return nft_id


class NftRepository:
    """Repository for NFT records."""

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """Initialize NFT repository."""
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None
        self.collection = collection

    async def connect(self):
        """Connect to MongoDB."""
        if self.collection is None:
            self.client = AsyncIOMotorClient(get_mongodb_url())
            self.db = self.client[get_mongodb_database_name()]
            self.collection = self.db[settings.NFTS_COLLECTION]
            try:
                await self.collection.create_index(
                    [("owner_address_normalized", ASCENDING)], name="owner_address_index"
                )
                await self.collection.create_index(
                    [("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created_index"
                )
            except PyMongoError as e:
                logger.error(f"Failed to create NFT indexes: {e}")
            logger.info("Connected to MongoDB nfts collection")

    async def disconnect(self):
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self.collection = None
            logger.info("Disconnected from MongoDB")

    async def count_by_owner(self, wallet_address: str) -> Result[int]:
        """
        Count NFT records owned by a wallet, ignoring address case.

        Args:
            wallet_address: Owner wallet address

        Returns:
            (count, None) or (None, StoreError)
        """
        try:
            await self.connect()
            count = await self.collection.count_documents(
                {"owner_address_normalized": normalize_address(wallet_address)}
            )
            return count, None
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Error counting NFTs for {wallet_address}: {e}")
            return None, StoreError(f"Failed to count NFTs: {e}", {"wallet_address": wallet_address})

    async def list_by_user(self, user_id: str, limit: int = 100) -> Result[List[NftModel]]:
        """
        List NFT records recorded by a user, newest first.

        Args:
            user_id: User ID
            limit: Maximum number of records

        Returns:
            (records, None) or (None, StoreError)
        """
        try:
            await self.connect()
            cursor = self.collection.find({"user_id": user_id}).sort("created_at", -1).limit(limit)
            docs = await cursor.to_list(length=limit)
            return [NftModel(**doc) for doc in docs], None
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Error listing NFTs for user {user_id}: {e}")
            return None, StoreError(f"Failed to list NFTs: {e}", {"user_id": user_id})

    async def create(self, nft: NftCreateModel) -> Result[NftModel]:
        """
        Record a new NFT.

        Returns:
            (created record, None) or (None, StoreError)
        """
        document = nft.model_dump()
        document["owner_address_normalized"] = normalize_address(nft.owner_address)
        document["created_at"] = datetime.now(timezone.utc)

        try:
            await self.connect()
            result = await self.collection.insert_one(document)
            document["_id"] = result.inserted_id
            logger.info(f"Recorded NFT {result.inserted_id} for owner {nft.owner_address}")
            return NftModel(**document), None
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Error recording NFT for {nft.owner_address}: {e}")
            return None, StoreError(f"Failed to record NFT: {e}", {"owner_address": nft.owner_address})

    async def update_image_url(self, nft_id: str, user_id: str, image_url: str) -> Result[NftModel]:
        """Update the image URL of an NFT recorded by ``user_id``."""
        try:
            await self.connect()
            doc = await self.collection.find_one_and_update(
                {"_id": _to_object_id(nft_id), "user_id": user_id},
                {"$set": {"image_url": image_url}},
                return_document=ReturnDocument.AFTER,
            )
        except (PyMongoError, ConnectionError) as e:
            logger.error(f"Error updating NFT {nft_id}: {e}")
            return None, StoreError(f"Failed to update NFT: {e}", {"nft_id": nft_id})

        if not doc:
            return None, NftNotFoundError(nft_id)
        return NftModel(**doc), None


# Global repository instance
nft_repository = NftRepository()
