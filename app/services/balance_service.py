"""
Balance calculation.

Outstanding balances are always re-derived from the full payment history:
- invoice outstanding = invoice.total_due - sum(payments against the invoice)
- client outstanding  = sum(client invoices total_due) - sum(client payments)

BalanceCalculator is the seam for swapping in a cached or incremental
strategy; validation code only talks to the interface.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession

from app.models.base import as_utc
from app.models.invoice import Invoice, payment_status
from app.repositories.invoice_repo import InvoiceRepository
from app.repositories.payment_repo import PaymentRepository
from app.schemas.invoice import InvoiceResponse
from app.schemas.report import ClientBalance


class BalanceCalculator(ABC):
    """Computes the outstanding balance a new payment is checked against."""

    @abstractmethod
    async def invoice_outstanding(
        self,
        invoice: Invoice,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Decimal:
        ...

    @abstractmethod
    async def client_balance(
        self,
        client_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> ClientBalance:
        ...


class AggregateBalanceCalculator(BalanceCalculator):
    """Sums the whole history on every call. No cached state."""

    def __init__(self, invoices: InvoiceRepository, payments: PaymentRepository):
        self.invoices = invoices
        self.payments = payments

    async def invoice_outstanding(self, invoice, session=None):
        total_paid = await self.payments.sum_amounts(invoice_id=invoice.id, session=session)
        return invoice.total_due - total_paid

    async def client_balance(self, client_id, session=None):
        if session is None:
            total_invoiced, total_payments = await asyncio.gather(
                self.invoices.sum_total_due(client_id),
                self.payments.sum_amounts(client_id=client_id)
            )
        else:
            # A session runs one operation at a time
            total_invoiced = await self.invoices.sum_total_due(client_id, session=session)
            total_payments = await self.payments.sum_amounts(client_id=client_id, session=session)

        return ClientBalance(
            total_invoiced=total_invoiced,
            total_payments=total_payments,
            balance=total_invoiced - total_payments
        )


def days_outstanding(invoice_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since the invoice date, truncated."""
    now = now or datetime.now(timezone.utc)
    return (as_utc(now) - as_utc(invoice_date)) // timedelta(days=1)


def annotate_invoice(
    invoice: Invoice,
    total_paid: Decimal,
    now: Optional[datetime] = None
) -> InvoiceResponse:
    """Attach total_paid, balance, payment_status and age to an invoice."""
    balance = invoice.total_due - total_paid
    return InvoiceResponse(
        id=invoice.id,
        number=invoice.number,
        date=invoice.date,
        client=invoice.client,
        type=invoice.type,
        description=invoice.description,
        items=invoice.items,
        total_qty=invoice.total_qty,
        sub_total=invoice.sub_total,
        total_due=invoice.total_due,
        total_paid=total_paid,
        balance=balance,
        payment_status=payment_status(total_paid, balance),
        days_outstanding=days_outstanding(invoice.date, now)
    )
