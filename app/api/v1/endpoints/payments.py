from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, Response, status

from app.db.mongo import get_db
from app.schemas.payment import (
    PaymentAmend,
    PaymentCreate,
    PaymentListResponse,
    PaymentQuery,
    PaymentResponse,
)
from app.schemas.report import PaymentDetailResponse
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(payment_in: PaymentCreate, db = Depends(get_db)):
    """Record a payment after checking it against the outstanding balance."""
    payment = await PaymentService(db).create_payment(payment_in)
    return PaymentResponse.model_validate(payment)


@router.get("", response_model=PaymentListResponse)
async def list_payments(params: Annotated[PaymentQuery, Query()], db = Depends(get_db)):
    """List payments with filters, sorting and paging"""
    return await PaymentService(db).list_payments(params)


@router.get("/{payment_id}", response_model=PaymentDetailResponse)
async def get_payment(payment_id: str, db = Depends(get_db)):
    """Get a payment with its client's balance and recent payments"""
    return await PaymentService(db).get_payment_detail(payment_id)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def amend_payment(payment_id: str, amend: PaymentAmend, db = Depends(get_db)):
    """Change a payment's date or method."""
    payment = await PaymentService(db).amend_payment(payment_id, amend)
    return PaymentResponse.model_validate(payment)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: str,
    reason: Optional[str] = Query(None, max_length=500),
    db = Depends(get_db)
):
    """Delete a payment. The reason, if given, goes to the audit log."""
    await PaymentService(db).delete_payment(payment_id, reason=reason)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
