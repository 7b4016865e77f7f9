"""Time Session Schemas — timer commands, edits, and session responses.

Invariants:
    - TimeSessionUpdate.duration_seconds >= 1 (stored durations are positive)
    - BulkSessionUpdate needs at least one session id and one field
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from invoicer.core.domain_types import SessionStatus


class TimerStart(BaseModel):
    project_id: UUID
    task_description: str = Field("", max_length=2000)
    is_billable: bool = True
    notes: str | None = None


class TimeSessionUpdate(BaseModel):
    task_description: str | None = Field(None, min_length=1)
    notes: str | None = None
    is_billable: bool | None = None
    hourly_rate_cents: int | None = Field(None, ge=0)
    duration_seconds: int | None = Field(None, ge=1)

    @field_validator("task_description")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("task_description cannot be empty or whitespace")
        return v


class BulkSessionUpdate(BaseModel):
    session_ids: list[UUID] = Field(min_length=1)
    is_billable: bool | None = None
    hourly_rate_cents: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def require_a_field(self):
        if self.is_billable is None and self.hourly_rate_cents is None:
            raise ValueError("bulk update requires is_billable or hourly_rate_cents")
        return self


class TimeSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    client_id: UUID
    task_description: str
    notes: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int | None = None
    status: SessionStatus
    hourly_rate_cents: int
    billable_amount_cents: int | None = None
    is_billable: bool
    invoice_item_id: UUID | None = None
    billed_at: datetime | None = None
    elapsed_seconds: int = 0


class BillingSummary(BaseModel):
    total_duration_seconds: int
    total_amount_cents: int
    session_count: int
