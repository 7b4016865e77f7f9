"""Invoice Schemas — manual creation, session conversion, edits, and responses.

Invariants:
    - Item quantity > 0, unit price >= 0 cents
    - tax_rate is a percent in [0, 100]
    - Manual invoices carry at least one item
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from invoicer.core.domain_types import InvoiceStatus


class InvoiceItemCreate(BaseModel):
    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit_price_cents: int = Field(ge=0)


class InvoiceItemUpdate(BaseModel):
    description: str | None = Field(None, min_length=1)
    quantity: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    unit_price_cents: int | None = Field(None, ge=0)


class _InvoiceDates(BaseModel):
    issue_date: date | None = None
    due_date: date | None = None
    service_period_end_date: date | None = None
    tax_rate: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    currency: str | None = Field(None, min_length=3, max_length=3)
    notes: str | None = None
    terms: str | None = None


class InvoiceCreate(_InvoiceDates):
    client_id: UUID
    items: list[InvoiceItemCreate] = Field(min_length=1)


class SessionsToInvoice(_InvoiceDates):
    session_ids: list[UUID] = Field(min_length=1)
    client_id: UUID
    group_by_project: bool = True


class InvoiceUpdate(_InvoiceDates):
    status: InvoiceStatus | None = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    description: str
    quantity: Decimal
    unit_price_cents: int
    total_cents: int
    position: int


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    client_id: UUID
    issue_date: date
    due_date: date
    service_period_end_date: date | None = None
    status: InvoiceStatus
    subtotal_cents: int
    tax_rate: Decimal
    tax_amount_cents: int
    total_cents: int
    currency: str
    notes: str | None = None
    terms: str | None = None
    created_at: datetime
    items: list[InvoiceItemResponse] = []
