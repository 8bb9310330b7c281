from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from app.db.mongo import get_db
from app.schemas.client import ClientCreate, ClientResponse, ClientUpdate
from app.schemas.report import ClientBalanceReport
from app.services.client_service import ClientService
from app.services.report_service import ReportService

router = APIRouter()


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(client_in: ClientCreate, db = Depends(get_db)):
    client = await ClientService(db).create_client(client_in)
    return ClientResponse.model_validate(client)


@router.get("", response_model=List[ClientResponse])
async def list_clients(
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db = Depends(get_db)
):
    """List clients, optionally searching company name and customer code"""
    clients = await ClientService(db).list_clients(search=search, limit=limit)
    return [ClientResponse.model_validate(client) for client in clients]


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, db = Depends(get_db)):
    client = await ClientService(db).get_client(client_id)
    return ClientResponse.model_validate(client)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(client_id: str, client_in: ClientUpdate, db = Depends(get_db)):
    """Update contact or credit details"""
    client = await ClientService(db).update_client(client_id, client_in)
    return ClientResponse.model_validate(client)


@router.get("/{client_id}/balance", response_model=ClientBalanceReport)
async def get_client_balance(client_id: str, db = Depends(get_db)):
    """Balance summary, aged receivables, outstanding invoices and recent payments."""
    return await ReportService(db).client_balance_report(client_id)
