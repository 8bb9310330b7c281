from decimal import Decimal
from typing import List

from pydantic import BaseModel, computed_field

from app.schemas.client import ClientResponse
from app.schemas.invoice import InvoiceResponse
from app.schemas.payment import PaymentResponse
from app.utils.money import ZERO, format_currency


class ClientBalance(BaseModel):
    """Account-level outstanding balance: everything invoiced minus everything paid."""
    total_invoiced: Decimal
    total_payments: Decimal
    balance: Decimal

    @computed_field
    @property
    def formatted_total_invoiced(self) -> str:
        return format_currency(self.total_invoiced)

    @computed_field
    @property
    def formatted_total_payments(self) -> str:
        return format_currency(self.total_payments)

    @computed_field
    @property
    def formatted_balance(self) -> str:
        return format_currency(self.balance)


class AgingBuckets(BaseModel):
    current: Decimal = ZERO
    days31_60: Decimal = ZERO
    days61_90: Decimal = ZERO
    over90: Decimal = ZERO

    def total(self) -> Decimal:
        return self.current + self.days31_60 + self.days61_90 + self.over90

    @computed_field
    @property
    def formatted_current(self) -> str:
        return format_currency(self.current)

    @computed_field
    @property
    def formatted_days31_60(self) -> str:
        return format_currency(self.days31_60)

    @computed_field
    @property
    def formatted_days61_90(self) -> str:
        return format_currency(self.days61_90)

    @computed_field
    @property
    def formatted_over90(self) -> str:
        return format_currency(self.over90)


class BalanceSummary(BaseModel):
    total_invoiced: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    credit_available: Decimal
    aging: AgingBuckets

    @computed_field
    @property
    def formatted_total_outstanding(self) -> str:
        return format_currency(self.total_outstanding)

    @computed_field
    @property
    def formatted_credit_available(self) -> str:
        return format_currency(self.credit_available)


class ClientBalanceReport(BaseModel):
    client: ClientResponse
    summary: BalanceSummary
    outstanding_invoices: List[InvoiceResponse]
    payment_history: List[PaymentResponse]


class PaymentDetailResponse(PaymentResponse):
    """A single payment with its client's account position."""
    client_details: ClientResponse
    client_balance: ClientBalance
    payment_history: List[PaymentResponse]
