import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from app.models.client import Client
from app.schemas.client import ClientCreate


class ClientRepository:
    """Client database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["clients"]

    async def create_client(self, client_data: ClientCreate) -> Client:
        """Create a new client. Raises DuplicateKeyError on a reused customer code."""
        client = Client(**client_data.model_dump())
        await self.collection.insert_one(client.to_document())
        return client

    async def get_client(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[Client]:
        """Get client by ID."""
        doc = await self.collection.find_one({"_id": client_id}, session=session)
        if doc:
            return Client(**doc)
        return None

    async def list_clients(self, search: Optional[str] = None, limit: int = 100) -> List[Client]:
        """List clients by company name, optionally filtered on name or customer code."""
        query = _search_query(search) if search else {}
        docs = await self.collection.find(query).sort("company_name", 1).to_list(limit)
        return [Client(**doc) for doc in docs]

    async def find_ids(self, search: str) -> List[ObjectId]:
        """Ids of clients whose name or customer code contains search."""
        return await self.collection.distinct("_id", _search_query(search))

    async def exists_other(self, field: str, value: Any, client_id: ObjectId) -> bool:
        """Whether a client other than client_id already has field == value."""
        doc = await self.collection.find_one(
            {field: value, "_id": {"$ne": client_id}},
            {"_id": 1}
        )
        return doc is not None

    async def update_client(self, client_id: ObjectId, fields: Dict[str, Any]) -> Optional[Client]:
        """Set the given fields. Raises DuplicateKeyError on a reused customer code."""
        fields = dict(fields)
        fields["updated_at"] = datetime.now(timezone.utc)
        result = await self.collection.find_one_and_update(
            {"_id": client_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Client(**result)
        return None

    async def lock_for_payment(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        """
        Bump the client's payment write token.

        Inside a transaction this makes any other transaction writing a
        payment for the same client hit a write conflict. Returns False when
        the client does not exist.
        """
        result = await self.collection.update_one(
            {"_id": client_id},
            {"$inc": {"payment_seq": 1}},
            session=session
        )
        return result.matched_count > 0

    async def set_last_payment_date(self, client_id: ObjectId, when: datetime) -> None:
        await self.collection.update_one(
            {"_id": client_id},
            {"$set": {
                "last_payment_date": when,
                "updated_at": datetime.now(timezone.utc)
            }}
        )


def _search_query(search: str) -> Dict[str, Any]:
    pattern = {"$regex": re.escape(search), "$options": "i"}
    return {"$or": [
        {"company_name": pattern},
        {"customer_code": pattern}
    ]}
