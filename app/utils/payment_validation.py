"""Payment validation utilities."""
from typing import List

from app.models.payment import AMENDABLE_FIELDS, AllocationType, PaymentMethod
from app.schemas.payment import PaymentCreate
from app.utils.money import CENT

_METHODS = [m.value for m in PaymentMethod]
_ALLOCATION_TYPES = [a.value for a in AllocationType]


def validate_payment_request(payment_in: PaymentCreate) -> List[str]:
    """
    Structural checks on a candidate payment.

    Every rule is evaluated and all failures are returned together; an empty
    list means the request may go on to the database checks.

    Rules:
    - client, amount, method and allocation_type are required
    - amount must be strictly positive and in whole cents
    - method must be EFT or Cash
    - allocation_type must be balanceBroughtForward or selectedInvoice
    - selectedInvoice needs an invoice, balanceBroughtForward must not have one
    """
    errors: List[str] = []

    if not payment_in.client:
        errors.append("Client is required")

    if payment_in.amount is None or payment_in.amount <= 0:
        errors.append("Amount must be greater than 0")
    elif payment_in.amount.normalize().as_tuple().exponent < CENT.as_tuple().exponent:
        errors.append("Amount cannot have more than 2 decimal places")

    if not payment_in.method:
        errors.append("Payment method is required")
    elif payment_in.method not in _METHODS:
        errors.append("Payment method must be 'EFT' or 'Cash'")

    if not payment_in.allocation_type:
        errors.append("Allocation type is required")
    elif payment_in.allocation_type not in _ALLOCATION_TYPES:
        errors.append(
            "Allocation type must be 'balanceBroughtForward' or 'selectedInvoice'"
        )

    if (
        payment_in.allocation_type == AllocationType.SELECTED_INVOICE.value
        and not payment_in.invoice
    ):
        errors.append("Invoice is required for selectedInvoice allocation")

    if (
        payment_in.allocation_type == AllocationType.BALANCE_BROUGHT_FORWARD.value
        and payment_in.invoice
    ):
        errors.append("Balance brought forward allocation should not have an invoice")

    return errors


def find_invalid_amend_fields(fields: List[str]) -> List[str]:
    """Fields an amendment tries to change that are not date or method."""
    return [name for name in fields if name not in AMENDABLE_FIELDS]


def validate_method(method: str | None) -> List[str]:
    if method is not None and method not in _METHODS:
        return ["Payment method must be 'EFT' or 'Cash'"]
    return []
