"""Project ORM — rate template read when a time session starts.

Invariants:
    - default_hourly_rate_cents is a non-negative integer
    - Rate is copied into sessions at start; editing it never touches existing sessions

Design Decisions:
    - is_active / is_archived flags instead of soft-delete timestamps
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from invoicer.db.base import Base


class Project(Base):
    """Project entity — belongs to a client, carries the default hourly rate."""
    __tablename__ = "projects"
    __table_args__ = (
        CheckConstraint(
            "default_hourly_rate_cents >= 0", name="projects_rate_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_hourly_rate_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    is_archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
