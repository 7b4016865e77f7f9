"""Invoice ORM — the aggregate root for items and payments.

Invariants:
    - invoice_number is unique (allocated from the user_settings counter)
    - total_cents = subtotal_cents + tax_amount_cents
    - subtotal_cents = sum(item.total_cents)
    - status in {draft, sent, paid, overdue, cancelled}
    - Items cascade-delete with the invoice; payments RESTRICT deletion

Design Decisions:
    - tax_rate as Numeric(5, 2) percent (8.50 = 8.5%): Decimal end to end
    - items ordered by position and loaded with selectin (no async lazy loads)
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, BigInteger, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from invoicer.core.domain_types import InvoiceStatus
from invoicer.db.base import Base, str_enum


class Invoice(Base):
    """Invoice aggregate root — owns its line items."""
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    invoice_number: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    service_period_end_date: Mapped[date | None] = mapped_column(
        Date, nullable=True,
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        str_enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT,
        index=True,
    )
    subtotal_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
    )
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    tax_amount_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
    )
    total_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem", back_populates="invoice",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="InvoiceItem.position",
    )
