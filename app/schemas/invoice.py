from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.models.invoice import InvoiceItem, InvoiceType, PaymentStatus
from app.schemas.common import IdStr
from app.utils.money import format_currency


class InvoiceCreate(BaseModel):
    client: str
    date: Optional[datetime] = None
    type: InvoiceType = InvoiceType.VAT
    description: Optional[str] = None
    items: List[InvoiceItem] = Field(..., min_length=1)


class InvoiceResponse(BaseModel):
    """Invoice annotated with what has been paid against it."""
    id: IdStr
    number: str
    date: datetime
    client: IdStr
    type: InvoiceType
    description: Optional[str] = None
    items: List[InvoiceItem] = []
    total_qty: int
    sub_total: Decimal
    total_due: Decimal
    total_paid: Decimal
    balance: Decimal
    payment_status: PaymentStatus
    days_outstanding: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def formatted_total_due(self) -> str:
        return format_currency(self.total_due)

    @computed_field
    @property
    def formatted_total_paid(self) -> str:
        return format_currency(self.total_paid)

    @computed_field
    @property
    def formatted_balance(self) -> str:
        return format_currency(self.balance)
