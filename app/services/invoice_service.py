import logging
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ReconciliationConflict, RecordNotFoundError
from app.models.base import as_utc, require_object_id
from app.models.invoice import Invoice
from app.repositories.client_repo import ClientRepository
from app.repositories.invoice_repo import InvoiceRepository
from app.repositories.payment_repo import PaymentRepository
from app.schemas.invoice import InvoiceCreate, InvoiceResponse
from app.services.balance_service import annotate_invoice
from app.utils.money import ZERO, format_currency

logger = logging.getLogger(__name__)


class InvoiceService:
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

    async def create_invoice(self, invoice_in: InvoiceCreate) -> InvoiceResponse:
        """Issue an invoice. total_due is computed here and never changes."""
        client_id = require_object_id(invoice_in.client, "client")
        client = await self.clients.get_client(client_id)
        if client is None:
            raise RecordNotFoundError("Client", invoice_in.client)

        fields = {"description": invoice_in.description}
        if invoice_in.date:
            fields["date"] = as_utc(invoice_in.date)

        invoice = Invoice.build(
            number=await self.invoices.next_number(),
            client=client_id,
            items=invoice_in.items,
            type=invoice_in.type,
            **fields
        )
        # A zero credit limit means no limit
        if client.credit_limit > 0 and invoice.total_due > client.credit_limit:
            raise ReconciliationConflict(
                f"Invoice amount ({format_currency(invoice.total_due)}) exceeds client "
                f"credit limit ({format_currency(client.credit_limit)})",
                attempted=invoice.total_due,
                limit=client.credit_limit
            )

        try:
            await self.invoices.create_invoice(invoice)
        except DuplicateKeyError:
            raise ReconciliationConflict(
                f"Invoice number {invoice.number} was taken concurrently, resubmit"
            )

        logger.info(
            "Invoice %s issued to client %s: total_due=%s",
            invoice.number, client_id, invoice.total_due
        )
        return annotate_invoice(invoice, ZERO)

    async def get_invoice(self, invoice_id: str) -> InvoiceResponse:
        oid = require_object_id(invoice_id, "invoice")
        invoice = await self.invoices.get_invoice(oid)
        if invoice is None:
            raise RecordNotFoundError("Invoice", invoice_id)

        total_paid = await self.payments.sum_amounts(invoice_id=oid)
        return annotate_invoice(invoice, total_paid)

    async def list_invoices(self, client_id: str) -> List[InvoiceResponse]:
        oid = require_object_id(client_id, "client")
        invoices = await self.invoices.list_invoices(oid)
        paid_by_invoice = await self.payments.sum_amounts_by_invoice(oid)

        now = datetime.now(timezone.utc)
        return [
            annotate_invoice(invoice, paid_by_invoice.get(invoice.id, ZERO), now)
            for invoice in invoices
        ]
