"""Health & Readiness Probes.

Invariants:
    - GET /api/v1/health/ answers 200 whenever the process is up
    - GET /api/v1/health/ready answers 503 when the database cannot be queried;
      a missing settings row is reported but does not fail readiness (the
      services create it on first use)
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from invoicer.core.errors import InvoicerError
from invoicer.infrastructure import database
from invoicer.models.user_settings import UserSettings
from invoicer.services.invoice_numbers import SETTINGS_ID

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_NAME = "invoicer-api"


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME, "version": "1.0.0"}


@router.get("/ready")
async def readiness_check():
    manager = database.db_manager
    if manager is None or not await manager.health_check():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )

    try:
        async with manager.session() as db:
            row = (await db.execute(
                select(UserSettings.id).where(UserSettings.id == SETTINGS_ID),
            )).scalar_one_or_none()
    except (SQLAlchemyError, InvoicerError) as e:
        logger.warning(f"Settings lookup failed during readiness check: {e}")
        row = None

    return {
        "status": "ready",
        "checks": {
            "database": "healthy",
            "settings": "present" if row is not None else "missing",
        },
    }
