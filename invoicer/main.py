"""Invoicer API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map InvoicerError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: cleaner startup/shutdown pairing
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from invoicer.api.error_handlers import register_error_handlers
from invoicer.api.routes import health, invoices, payments, settings as settings_routes
from invoicer.api.routes import time_sessions
from invoicer.config import get_settings
from invoicer.infrastructure import database
from invoicer.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Invoicer API started")
    yield
    if database.db_manager is not None:
        await database.db_manager.dispose()
    logger.info("Invoicer API shutting down")


app = FastAPI(title="Invoicer API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(time_sessions.router)
app.include_router(invoices.router)
app.include_router(payments.router)
app.include_router(settings_routes.router)

register_error_handlers(app)
