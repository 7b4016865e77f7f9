"""Invoice Routes — creation (manual and from sessions), lifecycle, and items."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.repository_protocols import Clock
from invoicer.infrastructure.clock import get_clock
from invoicer.infrastructure.database import get_db
from invoicer.schemas.invoice import (
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceItemUpdate,
    InvoiceResponse,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    SessionsToInvoice,
)
from invoicer.schemas.payment import PaymentResponse
from invoicer.services.invoice_generator import InvoiceGenerator
from invoicer.services.invoice_lifecycle import InvoiceLifecycleService
from invoicer.services.payment_reconciler import PaymentReconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])

_CREATE_OPTIONS = (
    "tax_rate", "issue_date", "due_date", "service_period_end_date",
    "currency", "notes", "terms",
)


def get_generator(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock),
) -> InvoiceGenerator:
    return InvoiceGenerator(db, clock=clock)


def get_lifecycle(db: AsyncSession = Depends(get_db)) -> InvoiceLifecycleService:
    return InvoiceLifecycleService(db)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    body: InvoiceCreate, generator: InvoiceGenerator = Depends(get_generator),
):
    return await generator.create_manual(
        body.client_id,
        [(i.description, i.quantity, i.unit_price_cents) for i in body.items],
        **body.model_dump(include=set(_CREATE_OPTIONS)),
    )


@router.post(
    "/from-sessions", response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_from_sessions(
    body: SessionsToInvoice, generator: InvoiceGenerator = Depends(get_generator),
):
    return await generator.create_from_sessions(
        body.session_ids,
        body.client_id,
        group_by_project=body.group_by_project,
        **body.model_dump(include=set(_CREATE_OPTIONS)),
    )


@router.get("/client/{client_id}", response_model=list[InvoiceResponse])
async def list_by_client(
    client_id: UUID, lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.list_by_client(client_id)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID, lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.get(invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: UUID,
    body: InvoiceUpdate,
    lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.update(
        invoice_id, body.model_dump(exclude_unset=True, exclude_none=True),
    )


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_status(
    invoice_id: UUID,
    body: InvoiceStatusUpdate,
    lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.update_status(invoice_id, body.status)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID, lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    await lifecycle.delete(invoice_id)


@router.post(
    "/{invoice_id}/items", response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    invoice_id: UUID,
    body: InvoiceItemCreate,
    lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.add_item(
        invoice_id, body.description, body.quantity, body.unit_price_cents,
    )


@router.patch("/{invoice_id}/items/{item_id}", response_model=InvoiceResponse)
async def update_item(
    invoice_id: UUID,
    item_id: UUID,
    body: InvoiceItemUpdate,
    lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.update_item(
        invoice_id, item_id, body.model_dump(exclude_unset=True, exclude_none=True),
    )


@router.delete("/{invoice_id}/items/{item_id}", response_model=InvoiceResponse)
async def delete_item(
    invoice_id: UUID,
    item_id: UUID,
    lifecycle: InvoiceLifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.delete_item(invoice_id, item_id)


@router.get("/{invoice_id}/payments", response_model=list[PaymentResponse])
async def list_payments(invoice_id: UUID, db: AsyncSession = Depends(get_db)):
    return await PaymentReconciler(db).list_by_invoice(invoice_id)
