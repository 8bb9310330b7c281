from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from app.models.base import MongoModel, Money, UTCDateTime


class PriceCategory(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


class Client(MongoModel):
    customer_code: str
    company_name: str
    owner: str
    address: Optional[str] = None
    cell_no: Optional[str] = None
    email: Optional[str] = None
    vat_no: Optional[str] = None
    reg_no: Optional[str] = None
    price_category: PriceCategory = PriceCategory.C
    credit_limit: Money = Field(default=Decimal("0"), ge=0)

    # Best-effort metadata, written after a payment is committed
    last_payment_date: Optional[UTCDateTime] = None
    # Bumped by every guarded payment write so concurrent ones conflict
    payment_seq: int = 0

    @field_validator("customer_code")
    @classmethod
    def normalise_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value else value
