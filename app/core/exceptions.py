"""
Reconciliation errors.

Every failure the engine reports to its caller is one of these. The HTTP
layer maps them onto status codes in app.main; nothing here knows about HTTP.
"""
from decimal import Decimal
from typing import List, Optional


class ReconciliationError(Exception):
    """Base class for errors surfaced by the reconciliation engine."""
    pass


class PaymentValidationError(ReconciliationError):
    """Malformed, missing or out-of-range input. Carries every violation found."""

    def __init__(self, errors: List[str], invalid_fields: Optional[List[str]] = None):
        self.errors = list(errors)
        self.invalid_fields = list(invalid_fields or [])
        super().__init__("; ".join(self.errors))


class RecordNotFoundError(ReconciliationError):
    """A referenced client, invoice or payment id does not resolve."""

    def __init__(self, entity: str, record_id: Optional[str] = None):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found")


class ReconciliationConflict(ReconciliationError):
    """
    Cross-entity invariant violation.

    For balance violations both the attempted amount and the outstanding
    balance are attached so the caller can correct the request. Credit limit
    violations carry the limit instead of an outstanding balance.
    """

    def __init__(
        self,
        message: str,
        attempted: Optional[Decimal] = None,
        outstanding: Optional[Decimal] = None,
        limit: Optional[Decimal] = None,
    ):
        self.message = message
        self.attempted = attempted
        self.outstanding = outstanding
        self.limit = limit
        super().__init__(message)
