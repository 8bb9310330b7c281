"""
Test client, balance report and invoice endpoints
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import PaymentValidationError, ReconciliationConflict
from app.db.mongo import get_db
from app.main import app, lifespan
from app.models.client import Client
from app.models.invoice import Invoice
from app.schemas.client import ClientResponse
from app.schemas.report import AgingBuckets, BalanceSummary, ClientBalanceReport
from app.services.balance_service import annotate_invoice
from app.services.client_service import ClientService
from app.services.invoice_service import InvoiceService
from app.services.report_service import ReportService

CLIENT_ID = "507f1f77bcf86cd799439011"


@pytest.fixture
def api_client():
    app.dependency_overrides[get_db] = lambda: MagicMock()
    try:
        yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    finally:
        app.dependency_overrides.clear()


def make_client(**overrides):
    fields = dict(
        id=ObjectId(CLIENT_ID),
        customer_code="ACME01",
        company_name="Acme Trading",
        owner="Sam Nkosi",
        credit_limit=Decimal("1000.00")
    )
    fields.update(overrides)
    return Client(**fields)


@pytest.mark.asyncio
async def test_root(api_client):
    async with api_client as client:
        response = await client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to Ledger API"}


@pytest.mark.asyncio
async def test_create_client(api_client):
    with patch.object(ClientService, "create_client", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = make_client()

        async with api_client as client:
            response = await client.post("/api/v1/clients", json={
                "customer_code": "acme01",
                "company_name": "Acme Trading",
                "owner": "Sam Nkosi",
                "credit_limit": "1000.00"
            })

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == CLIENT_ID
    assert data["customer_code"] == "ACME01"
    assert data["formatted_credit_limit"] == "R1,000.00"


@pytest.mark.asyncio
async def test_create_client_rejects_negative_credit_limit(api_client):
    async with api_client as client:
        response = await client.post("/api/v1/clients", json={
            "customer_code": "X1",
            "company_name": "X",
            "owner": "Y",
            "credit_limit": "-5"
        })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_customer_code_is_409(api_client):
    with patch.object(ClientService, "create_client", new_callable=AsyncMock) as mock_create:
        mock_create.side_effect = ReconciliationConflict("Customer code ACME01 already exists")

        async with api_client as client:
            response = await client.post("/api/v1/clients", json={
                "customer_code": "ACME01",
                "company_name": "Acme Trading",
                "owner": "Sam Nkosi"
            })

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "Customer code ACME01 already exists"
    }


@pytest.mark.asyncio
async def test_client_balance_report(api_client):
    report = ClientBalanceReport(
        client=ClientResponse.model_validate(make_client()),
        summary=BalanceSummary(
            total_invoiced=Decimal("800.00"),
            total_paid=Decimal("0"),
            total_outstanding=Decimal("800.00"),
            credit_available=Decimal("200.00"),
            aging=AgingBuckets(current=Decimal("800.00"))
        ),
        outstanding_invoices=[],
        payment_history=[]
    )
    with patch.object(ReportService, "client_balance_report", new_callable=AsyncMock) as mock_report:
        mock_report.return_value = report

        async with api_client as client:
            response = await client.get(f"/api/v1/clients/{CLIENT_ID}/balance")

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["formatted_credit_available"] == "R200.00"
    assert summary["aging"]["formatted_current"] == "R800.00"
    assert summary["aging"]["formatted_over90"] == "R0.00"
    mock_report.assert_awaited_once_with(CLIENT_ID)


@pytest.mark.asyncio
async def test_malformed_client_id_is_400(api_client):
    with patch.object(ClientService, "get_client", new_callable=AsyncMock) as mock_get:
        mock_get.side_effect = PaymentValidationError(["Invalid client ID format"])

        async with api_client as client:
            response = await client.get("/api/v1/clients/nope")

    assert response.status_code == 400
    assert response.json()["details"] == ["Invalid client ID format"]


@pytest.mark.asyncio
async def test_create_invoice(api_client):
    invoice = Invoice(
        number="INV-000007",
        client=ObjectId(CLIENT_ID),
        date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        sub_total=Decimal("200.00"),
        total_due=Decimal("230.00")
    )
    with patch.object(InvoiceService, "create_invoice", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = annotate_invoice(invoice, Decimal("0"))

        async with api_client as client:
            response = await client.post("/api/v1/invoices", json={
                "client": CLIENT_ID,
                "items": [{"stock_item": "Widget", "qty": 2, "price": "100.00"}]
            })

    assert response.status_code == 201
    data = response.json()
    assert data["number"] == "INV-000007"
    assert data["payment_status"] == "Unpaid"
    assert data["formatted_balance"] == "R230.00"


@pytest.mark.asyncio
async def test_create_invoice_needs_items(api_client):
    async with api_client as client:
        response = await client.post("/api/v1/invoices", json={"client": CLIENT_ID, "items": []})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_lifespan_opens_and_closes_connection():
    with patch("app.main.connect_to_mongo", new_callable=AsyncMock) as mock_connect, \
            patch("app.main.close_mongo_connection", new_callable=AsyncMock) as mock_close:
        async with lifespan(app):
            mock_connect.assert_awaited_once()
            mock_close.assert_not_called()

        mock_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_client(api_client):
    with patch.object(ClientService, "update_client", new_callable=AsyncMock) as mock_update:
        mock_update.return_value = make_client(credit_limit=Decimal("2500.00"))

        async with api_client as client:
            response = await client.patch(
                f"/api/v1/clients/{CLIENT_ID}", json={"credit_limit": "2500.00"}
            )

    assert response.status_code == 200
    assert response.json()["formatted_credit_limit"] == "R2,500.00"

    client_id, client_in = mock_update.call_args.args
    assert client_id == CLIENT_ID
    assert client_in.model_dump(exclude_unset=True) == {"credit_limit": Decimal("2500.00")}


@pytest.mark.asyncio
async def test_update_client_rejects_negative_credit_limit(api_client):
    async with api_client as client:
        response = await client.patch(f"/api/v1/clients/{CLIENT_ID}", json={"credit_limit": "-1"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_invoice_over_credit_limit_is_409(api_client):
    with patch.object(InvoiceService, "create_invoice", new_callable=AsyncMock) as mock_create:
        mock_create.side_effect = ReconciliationConflict(
            "Invoice amount (R230.00) exceeds client credit limit (R200.00)",
            attempted=Decimal("230"),
            limit=Decimal("200")
        )

        async with api_client as client:
            response = await client.post("/api/v1/invoices", json={
                "client": CLIENT_ID,
                "items": [{"qty": 2, "price": "100.00"}]
            })

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "Invoice amount (R230.00) exceeds client credit limit (R200.00)",
        "attempted": "230.00",
        "limit": "200.00"
    }
