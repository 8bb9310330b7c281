"""
PaymentRepository - payments received from clients.

Balances are never stored. The sum_* helpers aggregate over the full payment
history every time so a balance can't drift from the payments behind it.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from app.models.payment import Payment
from app.utils.money import ZERO, to_decimal


class PaymentRepository:
    """Payment database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["payments"]

    async def create_payment(
        self,
        payment: Payment,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Payment:
        await self.collection.insert_one(payment.to_document(), session=session)
        return payment

    async def get_payment(self, payment_id: ObjectId) -> Optional[Payment]:
        doc = await self.collection.find_one({"_id": payment_id})
        if doc:
            return Payment(**doc)
        return None

    async def list_payments(
        self,
        query: Dict[str, Any],
        sort_by: str = "date",
        sort_order: int = -1,
        skip: int = 0,
        limit: int = 20
    ) -> List[Payment]:
        cursor = self.collection.find(query).sort(sort_by, sort_order).skip(skip).limit(limit)
        docs = await cursor.to_list(None)
        return [Payment(**doc) for doc in docs]

    async def count_payments(self, query: Dict[str, Any]) -> int:
        return await self.collection.count_documents(query)

    async def list_for_client(
        self,
        client_id: ObjectId,
        limit: Optional[int] = None
    ) -> List[Payment]:
        """A client's payments, most recent first."""
        cursor = self.collection.find({"client": client_id}).sort("date", -1)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(None)
        return [Payment(**doc) for doc in docs]

    async def sum_amounts(
        self,
        client_id: Optional[ObjectId] = None,
        invoice_id: Optional[ObjectId] = None,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Decimal:
        """Total paid by a client, or against one invoice."""
        match: Dict[str, Any] = {}
        if client_id is not None:
            match["client"] = client_id
        if invoice_id is not None:
            match["invoice"] = invoice_id
        if not match:
            raise ValueError("sum_amounts needs a client or an invoice")

        result = await self.collection.aggregate([
            {"$match": match},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}}
        ], session=session).to_list(1)

        return to_decimal(result[0]["total"]) if result else ZERO

    async def sum_amounts_by_invoice(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Dict[ObjectId, Decimal]:
        """Total paid against each of a client's invoices, keyed by invoice id."""
        result = await self.collection.aggregate([
            {"$match": {"client": client_id, "invoice": {"$ne": None}}},
            {"$group": {"_id": "$invoice", "total": {"$sum": "$amount"}}}
        ], session=session).to_list(None)

        return {row["_id"]: to_decimal(row["total"]) for row in result}

    async def update_payment(self, payment_id: ObjectId, fields: Dict[str, Any]) -> Optional[Payment]:
        """Set the given fields and return the updated payment, or None if it is gone."""
        fields = dict(fields)
        fields["updated_at"] = datetime.now(timezone.utc)
        result = await self.collection.find_one_and_update(
            {"_id": payment_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Payment(**result)
        return None

    async def delete_payment(self, payment_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": payment_id})
        return result.deleted_count > 0
