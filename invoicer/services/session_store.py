"""Session Store — persistence primitives for time sessions.

Invariants:
    - insert_if_no_active refuses when any running or paused session exists;
      the partial unique index catches the race the pre-check cannot see
    - compare_and_set_status only writes when the row still holds an expected
      status (UPDATE ... WHERE status IN (...)); returns False otherwise
    - Nothing here commits: callers wrap calls in infrastructure.database.atomic

Design Decisions:
    - synchronize_session=False + explicit refresh: the CAS result is re-read
      inside the same transaction instead of evaluated in Python
    - Locking reads (for_update=True) repopulate instances already in the
      identity map, so rows checked under the lock are the committed ones
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.domain_types import ACTIVE_SESSION_STATUSES, SessionStatus
from invoicer.core.errors import ConflictError
from invoicer.models.time_session import TimeSession

logger = logging.getLogger(__name__)

ACTIVE_SESSION_CONFLICT = "A timer is already running. Stop it first."


class SessionStore:
    """Time-session data access used by the state machine and the invoice generator."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(
        self, session_id: UUID, for_update: bool = False,
    ) -> TimeSession | None:
        query = select(TimeSession).where(TimeSession.id == session_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_many(
        self, session_ids: Iterable[UUID], for_update: bool = False,
    ) -> list[TimeSession]:
        ids = list(session_ids)
        if not ids:
            return []
        query = select(TimeSession).where(TimeSession.id.in_(ids))
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_active(self) -> TimeSession | None:
        """The session occupying the timer slot (running or paused), if any."""
        result = await self.db.execute(
            select(TimeSession)
            .where(TimeSession.status.in_(list(ACTIVE_SESSION_STATUSES)))
            .order_by(TimeSession.start_time.desc())
            .limit(1),
        )
        return result.scalar_one_or_none()

    async def find_running(self, exclude_id: UUID | None = None) -> TimeSession | None:
        query = select(TimeSession).where(
            TimeSession.status == SessionStatus.RUNNING,
        )
        if exclude_id is not None:
            query = query.where(TimeSession.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def insert_if_no_active(self, session: TimeSession) -> TimeSession:
        """Insert a running session unless the timer slot is taken."""
        active = await self.find_active()
        if active is not None:
            raise ConflictError(ACTIVE_SESSION_CONFLICT, "TIMER_ALREADY_ACTIVE")
        self.db.add(session)
        # Flush now so a concurrent insert trips the unique index inside this block
        await self.db.flush()
        return session

    async def compare_and_set_status(
        self,
        session: TimeSession,
        expected: Iterable[SessionStatus],
        new_status: SessionStatus,
        **values: object,
    ) -> bool:
        """Move `session` to `new_status` only if it still holds an expected status."""
        result = await self.db.execute(
            update(TimeSession)
            .where(TimeSession.id == session.id)
            .where(TimeSession.status.in_(list(expected)))
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(session)
        return True

    async def list_unbilled(
        self, client_id: UUID | None = None, project_id: UUID | None = None,
    ) -> list[TimeSession]:
        query = (
            select(TimeSession)
            .where(TimeSession.status == SessionStatus.STOPPED)
            .where(TimeSession.invoice_item_id.is_(None))
            .where(TimeSession.is_billable.is_(True))
            .order_by(TimeSession.start_time.desc())
        )
        if client_id is not None:
            query = query.where(TimeSession.client_id == client_id)
        if project_id is not None:
            query = query.where(TimeSession.project_id == project_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_by_project(self, project_id: UUID) -> list[TimeSession]:
        result = await self.db.execute(
            select(TimeSession)
            .where(TimeSession.project_id == project_id)
            .order_by(TimeSession.start_time.desc()),
        )
        return list(result.scalars().all())

    async def billing_summary(
        self,
        client_id: UUID | None = None,
        project_id: UUID | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> dict:
        """Aggregate duration and amount over unbilled, billable, stopped sessions."""
        query = (
            select(
                func.coalesce(func.sum(TimeSession.duration_seconds), 0),
                func.coalesce(func.sum(TimeSession.billable_amount_cents), 0),
                func.count(TimeSession.id),
            )
            .where(TimeSession.status == SessionStatus.STOPPED)
            .where(TimeSession.invoice_item_id.is_(None))
            .where(TimeSession.is_billable.is_(True))
        )
        if client_id is not None:
            query = query.where(TimeSession.client_id == client_id)
        if project_id is not None:
            query = query.where(TimeSession.project_id == project_id)
        if from_date is not None:
            query = query.where(TimeSession.start_time >= from_date)
        if to_date is not None:
            query = query.where(TimeSession.start_time <= to_date)
        total_duration, total_amount, count = (await self.db.execute(query)).one()
        return {
            "total_duration_seconds": int(total_duration),
            "total_amount_cents": int(total_amount),
            "session_count": int(count),
        }

    async def link_to_item(
        self, session: TimeSession, item_id: UUID, billed_at: datetime,
    ) -> bool:
        """Mark a session billed, only if it is still unbilled."""
        result = await self.db.execute(
            update(TimeSession)
            .where(TimeSession.id == session.id)
            .where(TimeSession.invoice_item_id.is_(None))
            .values(invoice_item_id=item_id, billed_at=billed_at)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(session)
        return True

    async def unlink_items(self, item_ids: Iterable[UUID]) -> int:
        """Return sessions billed on these items to the unbilled pool."""
        ids = list(item_ids)
        if not ids:
            return 0
        result = await self.db.execute(
            update(TimeSession)
            .where(TimeSession.invoice_item_id.in_(ids))
            .values(invoice_item_id=None, billed_at=None)
            .execution_options(synchronize_session="fetch"),
        )
        if result.rowcount:
            logger.info(f"Unlinked {result.rowcount} billed session(s) from {len(ids)} item(s)")
        return result.rowcount
