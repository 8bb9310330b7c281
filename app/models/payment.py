"""
Payment model - money received from a client.

Invariants (enforced by PaymentService at creation):
- allocation_type = selectedInvoice iff invoice is set
- invoice, when set, belongs to the same client
- amount never exceeded the target's outstanding balance when accepted
- only date and method change after creation
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from app.models.base import MongoModel, Money, PyObjectId, UTCDateTime, _utcnow


class PaymentMethod(str, Enum):
    EFT = "EFT"
    CASH = "Cash"


class AllocationType(str, Enum):
    BALANCE_BROUGHT_FORWARD = "balanceBroughtForward"
    SELECTED_INVOICE = "selectedInvoice"


AMENDABLE_FIELDS = ("date", "method")


class Payment(MongoModel):
    date: UTCDateTime = Field(default_factory=_utcnow)
    client: PyObjectId
    amount: Money = Field(gt=0)
    method: PaymentMethod
    allocation_type: AllocationType
    invoice: Optional[PyObjectId] = None
