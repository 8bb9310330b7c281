"""
Invoice model - what a client owes.

total_due is fixed when the invoice is created. What has been paid against
it is never stored here; it is re-derived from the payments collection every
time a balance is needed.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.base import MongoModel, Money, PyObjectId, UTCDateTime, _utcnow
from app.utils.money import quantize, total

DEFAULT_VAT_RATE = Decimal("15")


class InvoiceType(str, Enum):
    VAT = "VAT"
    NON_VAT = "non VAT"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PARTIAL = "Partial"
    UNPAID = "Unpaid"


class InvoiceItem(BaseModel):
    stock_item: Optional[str] = None
    qty: int = Field(ge=1)
    price: Money = Field(ge=0)
    vat_rate: Optional[Money] = Field(default=None, ge=0, le=100)

    def line_total(self) -> Decimal:
        return self.qty * self.price

    def vat_amount(self) -> Decimal:
        # A zero rate falls back to the default, same as an absent one
        rate = self.vat_rate or DEFAULT_VAT_RATE
        return self.line_total() * rate / 100


class Invoice(MongoModel):
    number: str
    date: UTCDateTime = Field(default_factory=_utcnow)
    client: PyObjectId
    type: InvoiceType = InvoiceType.VAT
    description: Optional[str] = None
    items: List[InvoiceItem] = []

    total_qty: int = 0
    sub_total: Money = Decimal("0")
    total_due: Money = Decimal("0")

    @property
    def vat_amount(self) -> Decimal:
        return self.total_due - self.sub_total

    @classmethod
    def build(
        cls,
        number: str,
        client: PyObjectId,
        items: List[InvoiceItem],
        type: InvoiceType = InvoiceType.VAT,
        **fields,
    ) -> "Invoice":
        """
        Create an invoice with its totals computed from the items.

        sub_total and the VAT total are each rounded half-up to cents, so
        total_due is always a payable amount.
        """
        total_qty = sum(item.qty for item in items)
        sub_total = quantize(total(item.line_total() for item in items))
        if type == InvoiceType.VAT:
            vat = quantize(total(item.vat_amount() for item in items))
            total_due = sub_total + vat
        else:
            total_due = sub_total

        return cls(
            number=number,
            client=client,
            items=items,
            type=type,
            total_qty=total_qty,
            sub_total=sub_total,
            total_due=total_due,
            **fields,
        )


def payment_status(total_paid: Decimal, balance: Decimal) -> PaymentStatus:
    if balance <= 0:
        return PaymentStatus.PAID
    if total_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def format_invoice_number(sequence: int) -> str:
    return f"INV-{sequence:06d}"
