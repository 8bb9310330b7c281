import re
from decimal import Decimal
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

from app.models.invoice import Invoice, format_invoice_number
from app.utils.money import ZERO, to_decimal


class InvoiceRepository:
    """Invoice database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["invoices"]

    async def next_number(self) -> str:
        """Next INV-nnnnnn number after the highest one issued."""
        last = await self.collection.find_one(
            {},
            {"number": 1},
            sort=[("number", -1)]
        )
        last_sequence = 0
        if last and last.get("number"):
            last_sequence = int(last["number"].replace("INV-", ""))
        return format_invoice_number(last_sequence + 1)

    async def find_ids_by_number(self, search: str) -> List[ObjectId]:
        """Ids of invoices whose number contains search."""
        return await self.collection.distinct(
            "_id", {"number": {"$regex": re.escape(search), "$options": "i"}}
        )

    async def create_invoice(self, invoice: Invoice) -> Invoice:
        await self.collection.insert_one(invoice.to_document())
        return invoice

    async def get_invoice(
        self,
        invoice_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[Invoice]:
        doc = await self.collection.find_one({"_id": invoice_id}, session=session)
        if doc:
            return Invoice(**doc)
        return None

    async def list_invoices(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> List[Invoice]:
        """All invoices of a client, newest first."""
        docs = await self.collection.find(
            {"client": client_id},
            session=session
        ).sort("date", -1).to_list(None)
        return [Invoice(**doc) for doc in docs]

    async def sum_total_due(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Decimal:
        """Everything ever invoiced to a client."""
        result = await self.collection.aggregate([
            {"$match": {"client": client_id}},
            {"$group": {"_id": None, "total": {"$sum": "$total_due"}}}
        ], session=session).to_list(1)

        return to_decimal(result[0]["total"]) if result else ZERO
