"""Project & Client Lookup — SQL-backed implementations of the external collaborators.

Invariants:
    - Read-only: never writes projects or clients
    - Returns ProjectInfo snapshots, not ORM rows, so callers cannot mutate projects

Design Decisions:
    - Lives in services/ because it needs the request's AsyncSession
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.core.repository_protocols import ProjectInfo
from invoicer.models.client import Client
from invoicer.models.project import Project


class SqlProjectLookup:
    """ProjectLookup over the projects table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_project(self, project_id: UUID) -> ProjectInfo | None:
        result = await self.db.execute(
            select(Project).where(Project.id == project_id),
        )
        project = result.scalar_one_or_none()
        if project is None:
            return None
        return ProjectInfo(
            id=project.id,
            client_id=project.client_id,
            name=project.name,
            default_hourly_rate_cents=project.default_hourly_rate_cents,
            is_active=project.is_active,
            is_archived=project.is_archived,
        )


class SqlClientLookup:
    """ClientLookup over the clients table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def client_exists(self, client_id: UUID) -> bool:
        result = await self.db.execute(
            select(Client.id).where(Client.id == client_id),
        )
        return result.scalar_one_or_none() is not None
