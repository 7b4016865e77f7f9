"""Client ORM — attribute store for the party being invoiced.

Invariants:
    - Read-only from the billing engine's point of view (no CRUD here)
    - Sessions and invoices reference clients by client_id

Design Decisions:
    - Minimal columns: only what invoice validation and rendering collaborators read
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from invoicer.db.base import Base


class Client(Base):
    """Client entity — owns projects, sessions and invoices by reference."""
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
