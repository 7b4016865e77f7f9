"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Time and project data reach the core only through these types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM rows satisfy the *Like
      protocols without inheriting from anything
    - Clock is synchronous (reading the time does no IO); lookups are async
      because their implementations query the database
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from invoicer.core.domain_types import SessionStatus


@dataclass(frozen=True)
class ProjectInfo:
    """What the session state machine reads from a project at start time."""
    id: UUID
    client_id: UUID
    name: str
    default_hourly_rate_cents: int
    is_active: bool
    is_archived: bool = False


class Clock(Protocol):
    """Wall-clock source. All duration math uses this, never the client."""
    def now(self) -> datetime: ...


class ProjectLookup(Protocol):
    """External collaborator: project attribute store."""
    async def find_project(self, project_id: UUID) -> ProjectInfo | None: ...


class ClientLookup(Protocol):
    """External collaborator: client identity check."""
    async def client_exists(self, client_id: UUID) -> bool: ...


class BillableSessionLike(Protocol):
    """Structural contract for sessions passed to invoice validation."""
    id: UUID
    client_id: UUID
    status: SessionStatus
    is_billable: bool
    invoice_item_id: UUID | None
