"""
Payment lifecycle: create, amend, delete, look up.

Creation runs validation, the balance check and the insert as one unit of
work (see run_in_transaction). The unit of work first bumps the client's
payment write token, so two payments for the same client can never both be
checked against a balance that ignores the other.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import (
    PaymentValidationError,
    ReconciliationConflict,
    RecordNotFoundError,
)
from app.db.mongo import run_in_transaction
from app.models.base import as_utc, require_object_id
from app.models.payment import AMENDABLE_FIELDS, AllocationType, Payment, PaymentMethod
from app.repositories.client_repo import ClientRepository
from app.repositories.invoice_repo import InvoiceRepository
from app.repositories.payment_repo import PaymentRepository
from app.schemas.client import ClientResponse
from app.schemas.payment import (
    Pagination,
    PaymentAmend,
    PaymentCreate,
    PaymentListResponse,
    PaymentListSummary,
    PaymentQuery,
    PaymentResponse,
)
from app.schemas.report import PaymentDetailResponse
from app.services.balance_service import AggregateBalanceCalculator, BalanceCalculator
from app.utils.money import ZERO, format_currency, total
from app.utils.payment_validation import (
    find_invalid_amend_fields,
    validate_method,
    validate_payment_request,
)

logger = logging.getLogger(__name__)


def check_amount_within_balance(amount: Decimal, outstanding: Decimal, target: str) -> None:
    """Reject a payment larger than what is outstanding. Equal is fine."""
    if amount > outstanding:
        raise ReconciliationConflict(
            f"Payment amount ({format_currency(amount)}) exceeds {target} "
            f"outstanding balance ({format_currency(outstanding)})",
            attempted=amount,
            outstanding=outstanding
        )


class PaymentService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clients: Optional[ClientRepository] = None,
        invoices: Optional[InvoiceRepository] = None,
        payments: Optional[PaymentRepository] = None,
        balances: Optional[BalanceCalculator] = None
    ):
        self.db = db
        self.clients = clients or ClientRepository(db)
        self.invoices = invoices or InvoiceRepository(db)
        self.payments = payments or PaymentRepository(db)
        self.balances = balances or AggregateBalanceCalculator(self.invoices, self.payments)

    async def create_payment(self, payment_in: PaymentCreate) -> Payment:
        """
        Validate and persist a new payment.

        Raises PaymentValidationError with every structural problem found,
        RecordNotFoundError for an unknown client or invoice, and
        ReconciliationConflict when the invoice belongs to another client or
        the amount exceeds the outstanding balance. Nothing is written on
        failure.
        """
        errors = validate_payment_request(payment_in)
        if errors:
            raise PaymentValidationError(errors)

        client_id = require_object_id(payment_in.client, "client")
        allocation_type = AllocationType(payment_in.allocation_type)
        invoice_id = None
        if allocation_type == AllocationType.SELECTED_INVOICE:
            invoice_id = require_object_id(payment_in.invoice, "invoice")

        amount = payment_in.amount
        paid_on = as_utc(payment_in.date) if payment_in.date else datetime.now(timezone.utc)

        async def _create(session):
            if not await self.clients.lock_for_payment(client_id, session=session):
                raise RecordNotFoundError("Client", str(client_id))

            if allocation_type == AllocationType.SELECTED_INVOICE:
                invoice = await self.invoices.get_invoice(invoice_id, session=session)
                if invoice is None:
                    raise RecordNotFoundError("Invoice", str(invoice_id))
                if invoice.client != client_id:
                    raise ReconciliationConflict("Invoice does not belong to this client")

                outstanding = await self.balances.invoice_outstanding(invoice, session=session)
                check_amount_within_balance(amount, outstanding, "invoice")
            else:
                balance = await self.balances.client_balance(client_id, session=session)
                check_amount_within_balance(amount, balance.balance, "client")

            payment = Payment(
                date=paid_on,
                client=client_id,
                amount=amount,
                method=PaymentMethod(payment_in.method),
                allocation_type=allocation_type,
                invoice=invoice_id
            )
            return await self.payments.create_payment(payment, session=session)

        payment = await run_in_transaction(self.db, _create)
        logger.info(
            "Payment %s recorded: client=%s amount=%s allocation=%s invoice=%s",
            payment.id, payment.client, payment.amount,
            payment.allocation_type.value, payment.invoice
        )

        await self._record_last_payment_date(payment)
        return payment

    async def _record_last_payment_date(self, payment: Payment) -> None:
        """Best-effort: a failure here leaves the payment in place."""
        try:
            await self.clients.set_last_payment_date(payment.client, payment.date)
        except PyMongoError as exc:
            logger.warning(
                "Payment %s saved but last_payment_date for client %s not updated: %s",
                payment.id, payment.client, exc
            )

    async def amend_payment(self, payment_id: str, amend: PaymentAmend) -> Payment:
        """Change the date and/or method of a payment. Amount and allocation are fixed."""
        oid = require_object_id(payment_id, "payment")

        invalid_fields = find_invalid_amend_fields(list(amend.model_extra or {}))
        if invalid_fields:
            raise PaymentValidationError(
                ["Only date and method can be updated"],
                invalid_fields=invalid_fields
            )

        errors = validate_method(amend.method)
        if errors:
            raise PaymentValidationError(errors)

        existing = await self.payments.get_payment(oid)
        if existing is None:
            raise RecordNotFoundError("Payment", payment_id)

        fields: Dict[str, Any] = {}
        for name in AMENDABLE_FIELDS:
            value = getattr(amend, name)
            if name in amend.model_fields_set and value is not None:
                fields[name] = value
        if not fields:
            return existing

        if "date" in fields:
            fields["date"] = as_utc(fields["date"])
        if "method" in fields:
            fields["method"] = PaymentMethod(fields["method"]).value

        updated = await self.payments.update_payment(oid, fields)
        if updated is None:
            raise RecordNotFoundError("Payment", payment_id)

        logger.info("Payment %s amended: %s", payment_id, ", ".join(sorted(fields)))
        return updated

    async def delete_payment(self, payment_id: str, reason: Optional[str] = None) -> None:
        """
        Delete a payment.

        Balances are derived, so removing the payment reopens whatever it
        paid off. When PAYMENT_DELETE_WINDOW_DAYS is set, payments dated
        earlier than that are refused. Every deletion is audit-logged.
        """
        oid = require_object_id(payment_id, "payment")

        payment = await self.payments.get_payment(oid)
        if payment is None:
            raise RecordNotFoundError("Payment", payment_id)

        window = settings.PAYMENT_DELETE_WINDOW_DAYS
        if window is not None:
            age = datetime.now(timezone.utc) - as_utc(payment.date)
            if age > timedelta(days=window):
                raise ReconciliationConflict(
                    f"Payments older than {window} days cannot be deleted"
                )

        if not await self.payments.delete_payment(oid):
            raise RecordNotFoundError("Payment", payment_id)

        logger.warning(
            "Payment %s deleted: client=%s invoice=%s amount=%s date=%s reason=%s",
            payment.id, payment.client, payment.invoice, payment.amount,
            payment.date.isoformat(), reason or "-"
        )

    async def get_payment_detail(self, payment_id: str) -> PaymentDetailResponse:
        """A payment plus its client's balance and recent payments."""
        oid = require_object_id(payment_id, "payment")

        payment = await self.payments.get_payment(oid)
        if payment is None:
            raise RecordNotFoundError("Payment", payment_id)

        client = await self.clients.get_client(payment.client)
        if client is None:
            raise RecordNotFoundError("Client", str(payment.client))

        balance = await self.balances.client_balance(payment.client)
        history = await self.payments.list_for_client(
            payment.client, limit=settings.PAYMENT_HISTORY_LIMIT
        )

        return PaymentDetailResponse(
            **PaymentResponse.model_validate(payment).model_dump(exclude={"formatted_amount"}),
            client_details=ClientResponse.model_validate(client),
            client_balance=balance,
            payment_history=[PaymentResponse.model_validate(p) for p in history]
        )

    async def list_payments(self, params: PaymentQuery) -> PaymentListResponse:
        query = await self._build_query(params)
        skip = (params.page - 1) * params.limit
        sort_order = 1 if params.sort_order == "asc" else -1

        payments = await self.payments.list_payments(
            query,
            sort_by=params.sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=params.limit
        )
        total_count = await self.payments.count_payments(query)
        total_pages = -(-total_count // params.limit)

        return PaymentListResponse(
            data=[PaymentResponse.model_validate(p) for p in payments],
            summary=summarise_payments(payments),
            pagination=Pagination(
                page=params.page,
                limit=params.limit,
                total_count=total_count,
                total_pages=total_pages,
                has_next_page=params.page < total_pages,
                has_prev_page=params.page > 1
            )
        )

    async def _build_query(self, params: PaymentQuery) -> Dict[str, Any]:
        query: Dict[str, Any] = {}

        if params.search:
            # Matches on client name or code, or on invoice number
            client_ids = await self.clients.find_ids(params.search)
            invoice_ids = await self.invoices.find_ids_by_number(params.search)
            query["$or"] = [
                {"client": {"$in": client_ids}},
                {"invoice": {"$in": invoice_ids}}
            ]

        if params.client:
            query["client"] = require_object_id(params.client, "client")
        if params.method:
            query["method"] = params.method.value
        if params.allocation_type:
            query["allocation_type"] = params.allocation_type.value

        if params.start_date or params.end_date:
            query["date"] = {}
            if params.start_date:
                query["date"]["$gte"] = as_utc(params.start_date)
            if params.end_date:
                query["date"]["$lte"] = as_utc(params.end_date)

        if params.min_amount is not None or params.max_amount is not None:
            query["amount"] = {}
            if params.min_amount is not None:
                query["amount"]["$gte"] = params.min_amount
            if params.max_amount is not None:
                query["amount"]["$lte"] = params.max_amount

        return query


def summarise_payments(payments: List[Payment]) -> PaymentListSummary:
    amount = total(p.amount for p in payments)
    count = len(payments)
    return PaymentListSummary(
        total_payments=count,
        total_amount=amount,
        cash_payments=sum(1 for p in payments if p.method == PaymentMethod.CASH),
        eft_payments=sum(1 for p in payments if p.method == PaymentMethod.EFT),
        invoice_payments=sum(
            1 for p in payments if p.allocation_type == AllocationType.SELECTED_INVOICE
        ),
        balance_payments=sum(
            1 for p in payments if p.allocation_type == AllocationType.BALANCE_BROUGHT_FORWARD
        ),
        average_payment=amount / count if count else ZERO
    )
