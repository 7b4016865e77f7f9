"""Time Session Service — start/pause/resume/stop plus edits, deletes, and bulk patches.

Invariants:
    - At most one running session system-wide; a paused session also blocks start()
    - Every transition is validated by core.session_transitions, then written with a
      compare-and-swap on the expected status
    - Duration and amount are computed server-side at stop() from the injected clock
    - Billed sessions are never edited or deleted here
    - Each public write is one atomic() block; a unique-index race becomes ConflictError

Design Decisions:
    - Single-running invariant enforced by the database (partial unique index), not an
      in-process lock: holds across workers; the pre-check only yields a nicer message
    - delete() of a running session stops it first inside the same transaction
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.domain_types import SessionAction, SessionStatus
from invoicer.core.errors import BadRequestError, ConflictError, ErrorContext, NotFoundError
from invoicer.core.repository_protocols import Clock, ProjectLookup
from invoicer.core.session_transitions import (
    ACTION_TARGETS,
    compute_stop,
    live_elapsed_seconds,
    recompute_amount,
    sources_for,
    validate_bulk_members,
    validate_deletable,
    validate_editable,
    validate_transition,
)
from invoicer.infrastructure.clock import SystemClock
from invoicer.infrastructure.database import atomic
from invoicer.models.time_session import TimeSession
from invoicer.services.project_lookup import SqlProjectLookup
from invoicer.services.session_store import ACTIVE_SESSION_CONFLICT, SessionStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "task_description", "notes", "is_billable", "hourly_rate_cents", "duration_seconds",
})
BULK_FIELDS = frozenset({"is_billable", "hourly_rate_cents"})
CONCURRENT_CHANGE = "Session was modified concurrently. Reload and retry."


def _context(session_id: UUID, debug: dict | None = None) -> ErrorContext:
    return ErrorContext(session_id=str(session_id), debug_info=debug)


def _raise_rule(error: dict | None, session_id: UUID) -> None:
    if error is not None:
        raise BadRequestError(
            error["message"], error["error_code"], _context(session_id),
        )


class TimeSessionService:
    """The session state machine, orchestrated over SessionStore."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock | None = None,
        projects: ProjectLookup | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.projects = projects or SqlProjectLookup(db)
        self.store = SessionStore(db)

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, session_id: UUID) -> TimeSession:
        session = await self.store.get(session_id)
        if session is None:
            raise NotFoundError("TimeSession", str(session_id))
        return session

    async def get_active(self) -> TimeSession | None:
        return await self.store.find_active()

    async def list_unbilled(
        self, client_id: UUID | None = None, project_id: UUID | None = None,
    ) -> list[TimeSession]:
        return await self.store.list_unbilled(client_id, project_id)

    async def list_by_project(self, project_id: UUID) -> list[TimeSession]:
        if await self.projects.find_project(project_id) is None:
            raise NotFoundError("Project", str(project_id))
        return await self.store.list_by_project(project_id)

    async def billing_summary(self, **filters) -> dict:
        return await self.store.billing_summary(**filters)

    def elapsed_seconds(self, session: TimeSession) -> int:
        """Authoritative elapsed time; client timers resync to this value."""
        return live_elapsed_seconds(
            session.status, session.start_time, session.duration_seconds,
            self.clock.now(),
        )

    # ─── Transitions ─────────────────────────────────────────────

    async def start(
        self,
        project_id: UUID,
        task_description: str = "",
        is_billable: bool = True,
        notes: str | None = None,
    ) -> TimeSession:
        async with atomic(self.db, ACTIVE_SESSION_CONFLICT):
            project = await self.projects.find_project(project_id)
            if project is None:
                raise NotFoundError("Project", str(project_id))
            if not project.is_active or project.is_archived:
                raise BadRequestError(
                    f"Project '{project.name}' is not active",
                    "PROJECT_INACTIVE",
                )
            session = await self.store.insert_if_no_active(TimeSession(
                project_id=project.id,
                client_id=project.client_id,
                task_description=task_description,
                notes=notes,
                start_time=self.clock.now(),
                status=SessionStatus.RUNNING,
                hourly_rate_cents=project.default_hourly_rate_cents,
                is_billable=is_billable,
            ))
        logger.info(
            f"Timer started on project {project_id} at {project.default_hourly_rate_cents}c/h",
            extra={"session_id": session.id},
        )
        return session

    async def pause(self, session_id: UUID) -> TimeSession:
        async with atomic(self.db, CONCURRENT_CHANGE):
            session = await self._load(session_id, for_update=True)
            _raise_rule(validate_transition(session.status, SessionAction.PAUSE), session_id)
            await self._swap(session, SessionAction.PAUSE)
        logger.info("Timer paused", extra={"session_id": session_id})
        return session

    async def resume(self, session_id: UUID) -> TimeSession:
        async with atomic(self.db, ACTIVE_SESSION_CONFLICT):
            session = await self._load(session_id, for_update=True)
            _raise_rule(validate_transition(session.status, SessionAction.RESUME), session_id)
            other = await self.store.find_running(exclude_id=session_id)
            if other is not None:
                raise ConflictError(
                    "Another timer is running", "TIMER_ALREADY_ACTIVE",
                    _context(session_id, {"running_session_id": str(other.id)}),
                )
            await self._swap(session, SessionAction.RESUME)
        logger.info("Timer resumed", extra={"session_id": session_id})
        return session

    async def stop(self, session_id: UUID) -> TimeSession:
        async with atomic(self.db, CONCURRENT_CHANGE):
            session = await self._load(session_id, for_update=True)
            await self._stop_loaded(session)
        logger.info(
            f"Timer stopped: {session.duration_seconds}s billed, "
            f"{session.billable_amount_cents}c",
            extra={"session_id": session_id, "amount_cents": session.billable_amount_cents},
        )
        return session

    # ─── Edits ───────────────────────────────────────────────────

    async def update(self, session_id: UUID, fields: dict) -> TimeSession:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        async with atomic(self.db, CONCURRENT_CHANGE):
            session = await self._load(session_id, for_update=True)
            _raise_rule(
                validate_editable(session.status, session.invoice_item_id), session_id,
            )
            for name, value in fields.items():
                setattr(session, name, value)
            if "duration_seconds" in fields or "hourly_rate_cents" in fields:
                amount = recompute_amount(session.duration_seconds, session.hourly_rate_cents)
                if amount is not None:
                    session.billable_amount_cents = amount
            await self.db.flush()
        return session

    async def delete(self, session_id: UUID) -> None:
        async with atomic(self.db, CONCURRENT_CHANGE):
            session = await self._load(session_id, for_update=True)
            _raise_rule(validate_deletable(session.invoice_item_id), session_id)
            if session.status == SessionStatus.RUNNING:
                await self._stop_loaded(session)
            await self.db.delete(session)
        logger.info("Time session deleted", extra={"session_id": session_id})

    async def bulk_update(self, session_ids: list[UUID], patch: dict) -> int:
        unknown = set(patch) - BULK_FIELDS
        if unknown:
            raise BadRequestError(
                f"Fields cannot be bulk-updated: {', '.join(sorted(unknown))}",
                "FIELD_NOT_EDITABLE",
            )
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            raise BadRequestError("At least one session required", "NO_SESSIONS")
        async with atomic(self.db, CONCURRENT_CHANGE):
            sessions = await self.store.get_many(ids, for_update=True)
            if len(sessions) != len(ids):
                raise NotFoundError("TimeSession", message="One or more sessions not found")
            error = validate_bulk_members(
                (s.status, s.invoice_item_id) for s in sessions
            )
            if error is not None:
                raise BadRequestError(error["message"], error["error_code"])
            for session in sessions:
                for name, value in patch.items():
                    setattr(session, name, value)
                if session.status == SessionStatus.STOPPED and "hourly_rate_cents" in patch:
                    amount = recompute_amount(session.duration_seconds, session.hourly_rate_cents)
                    if amount is not None:
                        session.billable_amount_cents = amount
            await self.db.flush()
        logger.info(f"Bulk-updated {len(sessions)} session(s): {sorted(patch)}")
        return len(sessions)

    # ─── Internals ───────────────────────────────────────────────

    async def _load(self, session_id: UUID, for_update: bool = False) -> TimeSession:
        session = await self.store.get(session_id, for_update=for_update)
        if session is None:
            raise NotFoundError("TimeSession", str(session_id))
        return session

    async def _swap(
        self, session: TimeSession, action: SessionAction, **values: object,
    ) -> None:
        swapped = await self.store.compare_and_set_status(
            session, sources_for(action), ACTION_TARGETS[action], **values,
        )
        if not swapped:
            raise ConflictError(CONCURRENT_CHANGE, "STALE_SESSION", _context(session.id))

    async def _stop_loaded(self, session: TimeSession) -> None:
        _raise_rule(validate_transition(session.status, SessionAction.STOP), session.id)
        outcome = compute_stop(
            session.start_time, self.clock.now(), session.hourly_rate_cents,
        )
        await self._swap(
            session, SessionAction.STOP,
            end_time=outcome.end_time,
            duration_seconds=outcome.duration_seconds,
            billable_amount_cents=outcome.billable_amount_cents,
        )
