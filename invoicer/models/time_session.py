"""TimeSession ORM — one block of tracked time against a project.

Invariants:
    - At most one row system-wide has status = 'running' (partial unique index
      ix_time_sessions_single_running, enforced at flush/commit)
    - hourly_rate_cents is a snapshot of the project rate at start time
    - end_time, duration_seconds, billable_amount_cents are NULL until stopped
    - invoice_item_id set => billed => immutable until the item/invoice is deleted
    - client_id denormalized from the project at creation

Design Decisions:
    - Database-level uniqueness over an application lock: survives multiple
      workers and instances; the violation surfaces as IntegrityError -> ConflictError
    - ON DELETE SET NULL on invoice_item_id as a backstop; the services unlink
      explicitly inside their own transaction
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Text, Integer, BigInteger, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from invoicer.core.domain_types import SessionStatus
from invoicer.db.base import Base, str_enum

_RUNNING_ONLY = text("status = 'running'")


class TimeSession(Base):
    """TimeSession entity — the unit the state machine operates on."""
    __tablename__ = "time_sessions"
    __table_args__ = (
        CheckConstraint(
            "duration_seconds IS NULL OR duration_seconds > 0",
            name="time_sessions_duration_positive",
        ),
        Index(
            "ix_time_sessions_single_running", "status", unique=True,
            postgresql_where=_RUNNING_ONLY, sqlite_where=_RUNNING_ONLY,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    task_description: Mapped[str] = mapped_column(
        Text, nullable=False, default="",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    duration_seconds: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
    )
    status: Mapped[SessionStatus] = mapped_column(
        str_enum(SessionStatus), nullable=False, default=SessionStatus.RUNNING,
    )
    hourly_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    billable_amount_cents: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True,
    )
    is_billable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    invoice_item_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoice_items.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    billed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
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

    project: Mapped["Project"] = relationship("Project", lazy="selectin")
