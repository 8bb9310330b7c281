from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.models.client import PriceCategory
from app.schemas.common import IdStr
from app.utils.money import format_currency


class ClientCreate(BaseModel):
    customer_code: str = Field(..., min_length=1, max_length=50)
    company_name: str = Field(..., min_length=1, max_length=200)
    owner: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = None
    cell_no: Optional[str] = None
    email: Optional[str] = None
    vat_no: Optional[str] = None
    reg_no: Optional[str] = None
    price_category: PriceCategory = PriceCategory.C
    credit_limit: Decimal = Field(default=Decimal("0"), ge=0)


class ClientUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""
    customer_code: Optional[str] = Field(None, min_length=1, max_length=50)
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    owner: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = None
    cell_no: Optional[str] = None
    email: Optional[str] = None
    vat_no: Optional[str] = None
    reg_no: Optional[str] = None
    price_category: Optional[PriceCategory] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0)


class ClientResponse(BaseModel):
    id: IdStr
    customer_code: str
    company_name: str
    owner: str
    address: Optional[str] = None
    cell_no: Optional[str] = None
    email: Optional[str] = None
    vat_no: Optional[str] = None
    reg_no: Optional[str] = None
    price_category: PriceCategory
    credit_limit: Decimal
    last_payment_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def formatted_credit_limit(self) -> str:
        return format_currency(self.credit_limit)
