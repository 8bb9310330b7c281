from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from app.core.config import settings
from app.models.client import Client
from app.models.invoice import Invoice, format_invoice_number
from app.services.payment_service import PaymentService
from app.services.report_service import ReportService
from app.utils.money import ZERO, total


# ===== Motor mocks =====

def make_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock()
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.count_documents = AsyncMock()
    return collection


def cursor_returning(docs):
    """A find()/aggregate() cursor whose to_list resolves to docs."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def mock_db():
    """Mock MongoDB database for repository tests"""
    collections = {
        "clients": make_collection(),
        "invoices": make_collection(),
        "payments": make_collection(),
    }
    db = MagicMock()
    db.__getitem__.side_effect = collections.__getitem__
    return db


@pytest.fixture
def no_transactions(monkeypatch):
    """Run units of work without a MongoDB session."""
    monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", False)


# ===== In-memory record store =====

class InMemoryClientRepository:
    def __init__(self):
        self.docs = {}
        self.fail_metadata_write: Optional[Exception] = None

    def add(self, credit_limit="0", **fields) -> Client:
        fields.setdefault("customer_code", f"C{len(self.docs) + 1:03d}")
        fields.setdefault("company_name", "Acme Trading")
        fields.setdefault("owner", "Sam Nkosi")
        client = Client(credit_limit=Decimal(credit_limit), **fields)
        self.docs[client.id] = client
        return client

    async def create_client(self, client_data):
        client = Client(**client_data.model_dump())
        self.docs[client.id] = client
        return client

    async def get_client(self, client_id, session=None):
        return self.docs.get(client_id)

    async def list_clients(self, search=None, limit=100):
        return list(self.docs.values())[:limit]

    async def find_ids(self, search):
        needle = search.lower()
        return [
            c.id for c in self.docs.values()
            if needle in c.company_name.lower() or needle in c.customer_code.lower()
        ]

    async def exists_other(self, field, value, client_id):
        return any(
            getattr(c, field) == value for c in self.docs.values() if c.id != client_id
        )

    async def update_client(self, client_id, fields):
        client = self.docs.get(client_id)
        if client is None:
            return None
        updated = client.model_copy(update=fields)
        self.docs[client_id] = updated
        return updated

    async def lock_for_payment(self, client_id, session=None):
        client = self.docs.get(client_id)
        if client is None:
            return False
        client.payment_seq += 1
        return True

    async def set_last_payment_date(self, client_id, when):
        if self.fail_metadata_write is not None:
            raise self.fail_metadata_write
        self.docs[client_id].last_payment_date = when


class InMemoryInvoiceRepository:
    def __init__(self):
        self.docs = {}

    def add(self, client: Client, total_due, date: Optional[datetime] = None) -> Invoice:
        invoice = Invoice(
            number=format_invoice_number(len(self.docs) + 1),
            client=client.id,
            date=date or datetime.now(timezone.utc),
            sub_total=Decimal(total_due),
            total_due=Decimal(total_due)
        )
        self.docs[invoice.id] = invoice
        return invoice

    async def next_number(self):
        return format_invoice_number(len(self.docs) + 1)

    async def find_ids_by_number(self, search):
        return [i.id for i in self.docs.values() if search.lower() in i.number.lower()]

    async def create_invoice(self, invoice):
        self.docs[invoice.id] = invoice
        return invoice

    async def get_invoice(self, invoice_id, session=None):
        return self.docs.get(invoice_id)

    async def list_invoices(self, client_id, session=None):
        invoices = [i for i in self.docs.values() if i.client == client_id]
        return sorted(invoices, key=lambda i: i.date, reverse=True)

    async def sum_total_due(self, client_id, session=None):
        return total(i.total_due for i in self.docs.values() if i.client == client_id)


class InMemoryPaymentRepository:
    def __init__(self):
        self.docs = {}

    async def create_payment(self, payment, session=None):
        self.docs[payment.id] = payment
        return payment

    async def get_payment(self, payment_id):
        return self.docs.get(payment_id)

    async def list_for_client(self, client_id, limit=None):
        payments = sorted(
            (p for p in self.docs.values() if p.client == client_id),
            key=lambda p: p.date,
            reverse=True
        )
        return payments[:limit] if limit else payments

    async def sum_amounts(self, client_id=None, invoice_id=None, session=None):
        return total(
            p.amount for p in self.docs.values()
            if (client_id is None or p.client == client_id)
            and (invoice_id is None or p.invoice == invoice_id)
        )

    async def sum_amounts_by_invoice(self, client_id, session=None):
        sums = {}
        for p in self.docs.values():
            if p.client == client_id and p.invoice is not None:
                sums[p.invoice] = sums.get(p.invoice, ZERO) + p.amount
        return sums

    async def update_payment(self, payment_id, fields):
        payment = self.docs.get(payment_id)
        if payment is None:
            return None
        updated = payment.model_copy(update=fields)
        self.docs[payment_id] = updated
        return updated

    async def delete_payment(self, payment_id):
        return self.docs.pop(payment_id, None) is not None


@pytest.fixture
def store():
    return SimpleNamespace(
        clients=InMemoryClientRepository(),
        invoices=InMemoryInvoiceRepository(),
        payments=InMemoryPaymentRepository(),
    )


@pytest.fixture
def payment_service(store, no_transactions):
    return PaymentService(
        db=MagicMock(),
        clients=store.clients,
        invoices=store.invoices,
        payments=store.payments
    )


@pytest.fixture
def report_service(store):
    return ReportService(
        db=MagicMock(),
        clients=store.clients,
        invoices=store.invoices,
        payments=store.payments
    )


@pytest.fixture
def unknown_id():
    return str(ObjectId())
