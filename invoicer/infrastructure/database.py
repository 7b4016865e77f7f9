"""Database Session Manager — async connection pool, transactions, and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - atomic() is the only place service writes are committed: everything
      inside the block commits together or not at all
    - IntegrityError -> ConflictError; any other SQLAlchemyError -> DatabaseError
    - Connection pool uses pool_pre_ping for stale connection detection

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: prevents lazy-load issues in async context
    - Explicit commit/rollback boundary instead of ORM cascades for multi-row
      consistency (invoice + items + session links)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from invoicer.core.errors import ConflictError, DatabaseError, InvoicerError

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_MESSAGE = "The operation conflicted with a concurrent change"


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 3600}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow)
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise ConflictError(DEFAULT_CONFLICT_MESSAGE, "INTEGRITY_CONFLICT")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def atomic(
    db: AsyncSession, conflict_message: str = DEFAULT_CONFLICT_MESSAGE,
) -> AsyncGenerator[AsyncSession, None]:
    """Commit everything written in the block, or roll all of it back.

    Domain errors raised inside the block propagate unchanged after rollback.
    A constraint violation at flush or commit time becomes ConflictError
    carrying `conflict_message`.
    """
    try:
        yield db
        await db.commit()
    except InvoicerError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning(
            f"Integrity conflict: {e.orig}", extra={"error_code": "INTEGRITY_CONFLICT"},
        )
        raise ConflictError(conflict_message, "INTEGRITY_CONFLICT") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Transaction failed: {e}", exc_info=True)
        raise DatabaseError("Database operation failed", "transaction") from e
    except Exception:
        await db.rollback()
        raise


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
