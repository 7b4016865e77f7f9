"""Payment Schemas — recorded payments and their edits."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from invoicer.core.domain_types import PaymentMethod


class PaymentCreate(BaseModel):
    invoice_id: UUID
    amount_cents: int = Field(gt=0)
    payment_date: date | None = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = None


class PaymentUpdate(BaseModel):
    amount_cents: int | None = Field(None, gt=0)
    payment_date: date | None = None
    payment_method: PaymentMethod | None = None
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    amount_cents: int
    payment_date: date
    payment_method: PaymentMethod
    reference_number: str | None = None
    notes: str | None = None
    created_at: datetime


class PaymentTotal(BaseModel):
    invoice_id: UUID
    total_paid_cents: int
