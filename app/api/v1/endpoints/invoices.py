from typing import List
from fastapi import APIRouter, Depends, Query, status

from app.db.mongo import get_db
from app.schemas.invoice import InvoiceCreate, InvoiceResponse
from app.services.invoice_service import InvoiceService

router = APIRouter()


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_in: InvoiceCreate, db = Depends(get_db)):
    """Issue an invoice to a client"""
    return await InvoiceService(db).create_invoice(invoice_in)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(client: str = Query(...), db = Depends(get_db)):
    """A client's invoices with what has been paid against each"""
    return await InvoiceService(db).list_invoices(client)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str, db = Depends(get_db)):
    return await InvoiceService(db).get_invoice(invoice_id)
