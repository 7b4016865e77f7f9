"""UserSettings ORM — singleton row holding invoice defaults and the number counter.

Invariants:
    - Exactly one row (find-or-create on first use)
    - next_invoice_number only ever moves through an atomic
      UPDATE ... SET next = next + 1 RETURNING (never read-then-write)
    - next_invoice_number cannot be edited through the settings API

Design Decisions:
    - Persistent row, not an in-memory counter: survives restarts and
      multi-instance deployment
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from invoicer.db.base import Base


class UserSettings(Base):
    """UserSettings singleton — the system's only shared mutable counter."""
    __tablename__ = "user_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_payment_terms: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30,
    )
    default_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD",
    )
    default_tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    invoice_prefix: Mapped[str] = mapped_column(
        String(20), nullable=False, default="INV-",
    )
    next_invoice_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )
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
