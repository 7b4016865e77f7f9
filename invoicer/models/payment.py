"""Payment ORM — money received against an invoice.

Invariants:
    - amount_cents > 0
    - sum(payments.amount_cents) for an invoice <= invoice.total_cents
      (enforced by the reconciler inside the payment transaction)
    - ON DELETE RESTRICT: an invoice with payments cannot be deleted

Design Decisions:
    - No relationship back to Invoice: the reconciler sums with an aggregate query
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Text, BigInteger, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from invoicer.core.domain_types import PaymentMethod
from invoicer.db.base import Base, str_enum


class Payment(Base):
    """Payment entity — owned by an invoice, drives its status."""
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="payments_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        str_enum(PaymentMethod), nullable=False,
        default=PaymentMethod.BANK_TRANSFER,
    )
    reference_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
