"""Time Session Routes — timer controls, session edits, and unbilled queries.

Invariants:
    - Every response carries elapsed_seconds computed from the server clock;
      client-side timers resync to it
    - Routes hold no business logic: TimeSessionService owns validation and commits
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.repository_protocols import Clock
from invoicer.infrastructure.clock import get_clock
from invoicer.infrastructure.database import get_db
from invoicer.models.time_session import TimeSession
from invoicer.schemas.time_session import (
    BillingSummary,
    BulkSessionUpdate,
    TimerStart,
    TimeSessionResponse,
    TimeSessionUpdate,
)
from invoicer.services.time_sessions import TimeSessionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/time-sessions", tags=["time-sessions"])


def get_service(
    db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock),
) -> TimeSessionService:
    return TimeSessionService(db, clock=clock)


def _respond(service: TimeSessionService, session: TimeSession) -> TimeSessionResponse:
    response = TimeSessionResponse.model_validate(session)
    response.elapsed_seconds = service.elapsed_seconds(session)
    return response


@router.post(
    "/start", response_model=TimeSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_timer(
    body: TimerStart, service: TimeSessionService = Depends(get_service),
):
    session = await service.start(
        body.project_id, body.task_description, body.is_billable, body.notes,
    )
    return _respond(service, session)


@router.get("/active", response_model=TimeSessionResponse | None)
async def get_active(service: TimeSessionService = Depends(get_service)):
    session = await service.get_active()
    return _respond(service, session) if session else None


@router.get("/unbilled", response_model=list[TimeSessionResponse])
async def list_unbilled(
    client_id: UUID | None = Query(None),
    project_id: UUID | None = Query(None),
    service: TimeSessionService = Depends(get_service),
):
    sessions = await service.list_unbilled(client_id, project_id)
    return [_respond(service, s) for s in sessions]


@router.get("/summary", response_model=BillingSummary)
async def billing_summary(
    client_id: UUID | None = Query(None),
    project_id: UUID | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    service: TimeSessionService = Depends(get_service),
):
    return await service.billing_summary(
        client_id=client_id, project_id=project_id,
        from_date=from_date, to_date=to_date,
    )


@router.get("/project/{project_id}", response_model=list[TimeSessionResponse])
async def list_by_project(
    project_id: UUID, service: TimeSessionService = Depends(get_service),
):
    sessions = await service.list_by_project(project_id)
    return [_respond(service, s) for s in sessions]


@router.patch("/bulk")
async def bulk_update(
    body: BulkSessionUpdate, service: TimeSessionService = Depends(get_service),
):
    patch = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"session_ids"})
    updated = await service.bulk_update(body.session_ids, patch)
    return {"updated": updated}


@router.get("/{session_id}", response_model=TimeSessionResponse)
async def get_session(
    session_id: UUID, service: TimeSessionService = Depends(get_service),
):
    return _respond(service, await service.get(session_id))


@router.post("/{session_id}/pause", response_model=TimeSessionResponse)
async def pause_timer(
    session_id: UUID, service: TimeSessionService = Depends(get_service),
):
    return _respond(service, await service.pause(session_id))


@router.post("/{session_id}/resume", response_model=TimeSessionResponse)
async def resume_timer(
    session_id: UUID, service: TimeSessionService = Depends(get_service),
):
    return _respond(service, await service.resume(session_id))


@router.post("/{session_id}/stop", response_model=TimeSessionResponse)
async def stop_timer(
    session_id: UUID, service: TimeSessionService = Depends(get_service),
):
    return _respond(service, await service.stop(session_id))


@router.patch("/{session_id}", response_model=TimeSessionResponse)
async def update_session(
    session_id: UUID,
    body: TimeSessionUpdate,
    service: TimeSessionService = Depends(get_service),
):
    session = await service.update(
        session_id, body.model_dump(exclude_unset=True, exclude_none=True),
    )
    return _respond(service, session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID, service: TimeSessionService = Depends(get_service),
):
    await service.delete(session_id)
