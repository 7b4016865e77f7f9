"""InvoiceItem ORM — one line on an invoice.

Invariants:
    - Always belongs to an Invoice (invoice_id FK, ON DELETE CASCADE)
    - Manual items: total_cents = round_half_up(quantity * unit_price_cents)
    - Session-derived items: total_cents = exact sum of linked sessions' amounts
    - position orders items within an invoice, starting at 0

Design Decisions:
    - quantity as Numeric(10, 2): hours in quarter-hour steps fit exactly
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Text, Integer, BigInteger, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from invoicer.db.base import Base


class InvoiceItem(Base):
    """InvoiceItem entity — a priced line, optionally backed by time sessions."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        Index("ix_invoice_items_invoice_position", "invoice_id", "position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice", back_populates="items",
    )
