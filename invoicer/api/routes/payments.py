"""Payment Routes — record, correct, and remove payments against invoices."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.repository_protocols import Clock
from invoicer.infrastructure.clock import get_clock
from invoicer.infrastructure.database import get_db
from invoicer.schemas.payment import (
    PaymentCreate,
    PaymentResponse,
    PaymentTotal,
    PaymentUpdate,
)
from invoicer.services.payment_reconciler import PaymentReconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


def get_reconciler(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock),
) -> PaymentReconciler:
    return PaymentReconciler(db, clock=clock)


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    body: PaymentCreate, reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return await reconciler.create_payment(**body.model_dump())


@router.get("/invoice/{invoice_id}/total", response_model=PaymentTotal)
async def total_paid(
    invoice_id: UUID, reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return PaymentTotal(
        invoice_id=invoice_id,
        total_paid_cents=await reconciler.total_paid(invoice_id),
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID, reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return await reconciler.get(payment_id)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: UUID,
    body: PaymentUpdate,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    return await reconciler.update_payment(
        payment_id, body.model_dump(exclude_unset=True, exclude_none=True),
    )


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: UUID, reconciler: PaymentReconciler = Depends(get_reconciler),
):
    await reconciler.delete_payment(payment_id)
