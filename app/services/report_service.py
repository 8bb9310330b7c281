"""
Client balance report with aged receivables.

Outstanding invoices (balance > 0) are bucketed by whole days since the
invoice date:
    current    <= 30
    days31_60  31..60
    days61_90  61..90
    over90     > 90
Every outstanding invoice lands in exactly one bucket, so the buckets always
add up to total_outstanding.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.exceptions import RecordNotFoundError
from app.models.base import require_object_id
from app.repositories.client_repo import ClientRepository
from app.repositories.invoice_repo import InvoiceRepository
from app.repositories.payment_repo import PaymentRepository
from app.schemas.client import ClientResponse
from app.schemas.invoice import InvoiceResponse
from app.schemas.payment import PaymentResponse
from app.schemas.report import AgingBuckets, BalanceSummary, ClientBalanceReport
from app.services.balance_service import annotate_invoice
from app.utils.money import ZERO, total


def aging_bucket(days: int) -> str:
    if days <= 30:
        return "current"
    if days <= 60:
        return "days31_60"
    if days <= 90:
        return "days61_90"
    return "over90"


def build_aging(outstanding: List[InvoiceResponse]) -> AgingBuckets:
    buckets = {"current": ZERO, "days31_60": ZERO, "days61_90": ZERO, "over90": ZERO}
    for invoice in outstanding:
        buckets[aging_bucket(invoice.days_outstanding)] += invoice.balance
    return AgingBuckets(**buckets)


class ReportService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clients: Optional[ClientRepository] = None,
        invoices: Optional[InvoiceRepository] = None,
        payments: Optional[PaymentRepository] = None
    ):
        self.db = db
        self.clients = clients or ClientRepository(db)
        self.invoices = invoices or InvoiceRepository(db)
        self.payments = payments or PaymentRepository(db)

    async def client_balance_report(
        self,
        client_id: str,
        now: Optional[datetime] = None
    ) -> ClientBalanceReport:
        oid = require_object_id(client_id, "client")

        client = await self.clients.get_client(oid)
        if client is None:
            raise RecordNotFoundError("Client", client_id)

        invoices, paid_by_invoice, total_paid, history = await asyncio.gather(
            self.invoices.list_invoices(oid),
            self.payments.sum_amounts_by_invoice(oid),
            self.payments.sum_amounts(client_id=oid),
            self.payments.list_for_client(oid, limit=settings.PAYMENT_HISTORY_LIMIT)
        )

        now = now or datetime.now(timezone.utc)
        annotated = [
            annotate_invoice(invoice, paid_by_invoice.get(invoice.id, ZERO), now)
            for invoice in invoices
        ]
        outstanding = [invoice for invoice in annotated if invoice.balance > 0]

        aging = build_aging(outstanding)
        total_outstanding = aging.total()
        summary = BalanceSummary(
            total_invoiced=total(invoice.total_due for invoice in invoices),
            total_paid=total_paid,
            total_outstanding=total_outstanding,
            # Negative means the client is over their limit
            credit_available=client.credit_limit - total_outstanding,
            aging=aging
        )

        return ClientBalanceReport(
            client=ClientResponse.model_validate(client),
            summary=summary,
            outstanding_invoices=outstanding,
            payment_history=[PaymentResponse.model_validate(p) for p in history]
        )
