from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.core.config import settings
from app.models.payment import AllocationType, PaymentMethod
from app.schemas.common import IdStr
from app.utils.money import format_currency


class PaymentCreate(BaseModel):
    """
    Candidate payment. Fields are loose on purpose: the payment validator
    reports every problem at once instead of stopping at the first one.
    """
    client: Optional[str] = None
    amount: Optional[Decimal] = None
    method: Optional[str] = None
    allocation_type: Optional[str] = None
    invoice: Optional[str] = None
    date: Optional[datetime] = None


class PaymentAmend(BaseModel):
    """Only date and method may change; anything else is collected and rejected."""
    date: Optional[datetime] = None
    method: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class PaymentQuery(BaseModel):
    """Filters, sorting and paging for the payment list."""
    search: Optional[str] = Field(None, max_length=100)
    client: Optional[str] = None
    method: Optional[PaymentMethod] = None
    allocation_type: Optional[AllocationType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=settings.MAX_PAGE_SIZE)
    sort_by: Literal["date", "amount", "created_at"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"


class PaymentResponse(BaseModel):
    id: IdStr
    date: datetime
    client: IdStr
    amount: Decimal
    method: PaymentMethod
    allocation_type: AllocationType
    invoice: Optional[IdStr] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def formatted_amount(self) -> str:
        return format_currency(self.amount)


class PaymentListSummary(BaseModel):
    total_payments: int
    total_amount: Decimal
    cash_payments: int
    eft_payments: int
    invoice_payments: int
    balance_payments: int
    average_payment: Decimal

    @computed_field
    @property
    def formatted_total_amount(self) -> str:
        return format_currency(self.total_amount)

    @computed_field
    @property
    def formatted_average_payment(self) -> str:
        return format_currency(self.average_payment)


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PaymentListResponse(BaseModel):
    data: List[PaymentResponse]
    summary: PaymentListSummary
    pagination: Pagination
