"""Session Transitions — the time-session state machine and its duration accounting.

Invariants:
    - running -> {paused, stopped}, paused -> {running, stopped}, stopped is terminal
    - Every operation validates through ALLOWED_TRANSITIONS (single source of truth)
    - Billed duration = elapsed start->stop rounded UP to BILLING_INCREMENT_SECONDS,
      never less than one increment
    - Billable amount = round_half_up(duration / 3600 * snapshot rate), integer cents
    - Validators are PURE: they return an error descriptor or None, the shell raises

Design Decisions:
    - Elapsed time ignores pauses: no pause intervals are stored, so a paused and
      resumed session bills start->stop as if it ran continuously (known open question)
    - Datetimes from SQLite come back naive; as_utc() normalizes before subtracting
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from invoicer.core.domain_types import (
    BILLING_INCREMENT_SECONDS,
    SessionAction,
    SessionStatus,
)
from invoicer.core.money import amount_for_duration


ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.RUNNING: frozenset({SessionStatus.PAUSED, SessionStatus.STOPPED}),
    SessionStatus.PAUSED: frozenset({SessionStatus.RUNNING, SessionStatus.STOPPED}),
    SessionStatus.STOPPED: frozenset(),
}

ACTION_TARGETS: dict[SessionAction, SessionStatus] = {
    SessionAction.PAUSE: SessionStatus.PAUSED,
    SessionAction.RESUME: SessionStatus.RUNNING,
    SessionAction.STOP: SessionStatus.STOPPED,
}

_REJECTION_MESSAGES: dict[tuple[SessionAction, SessionStatus], str] = {
    (SessionAction.PAUSE, SessionStatus.PAUSED): "Session is already paused",
    (SessionAction.PAUSE, SessionStatus.STOPPED): "Cannot pause a stopped session",
    (SessionAction.RESUME, SessionStatus.RUNNING): "Session is not paused",
    (SessionAction.RESUME, SessionStatus.STOPPED): "Cannot resume a stopped session",
    (SessionAction.STOP, SessionStatus.STOPPED): "Session is already stopped",
}


@dataclass(frozen=True)
class StopOutcome:
    """Values frozen onto a session at stop time."""
    end_time: datetime
    elapsed_seconds: int
    duration_seconds: int
    billable_amount_cents: int


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sources_for(action: SessionAction) -> frozenset[SessionStatus]:
    """States from which `action` is legal, derived from the transition table."""
    target = ACTION_TARGETS[action]
    return frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets)


def validate_transition(current: SessionStatus, action: SessionAction) -> dict | None:
    """Return an error descriptor if `action` is illegal from `current`."""
    current = SessionStatus(current)
    if ACTION_TARGETS[action] in ALLOWED_TRANSITIONS[current]:
        return None
    return {
        "error_code": "INVALID_TRANSITION",
        "message": _REJECTION_MESSAGES.get(
            (action, current),
            f"Cannot {action.value} a {current.value} session",
        ),
    }


def elapsed_seconds(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds between two instants, floored, never negative."""
    delta = as_utc(end_time) - as_utc(start_time)
    return max(0, math.floor(delta.total_seconds()))


def round_up_duration(actual_seconds: int) -> int:
    """Round up to the next billing increment (61s -> 900, 901s -> 1800, 0s -> 900)."""
    increments = max(1, math.ceil(actual_seconds / BILLING_INCREMENT_SECONDS))
    return increments * BILLING_INCREMENT_SECONDS


def compute_stop(
    start_time: datetime, now: datetime, hourly_rate_cents: int,
) -> StopOutcome:
    """Duration and amount for a session stopped at `now`. Pure."""
    actual = elapsed_seconds(start_time, now)
    duration = round_up_duration(actual)
    return StopOutcome(
        end_time=as_utc(now),
        elapsed_seconds=actual,
        duration_seconds=duration,
        billable_amount_cents=amount_for_duration(duration, hourly_rate_cents),
    )


def live_elapsed_seconds(
    status: SessionStatus,
    start_time: datetime,
    duration_seconds: int | None,
    now: datetime,
) -> int:
    """Server-authoritative elapsed value a client-side timer resyncs against."""
    if status == SessionStatus.STOPPED:
        return duration_seconds or 0
    return elapsed_seconds(start_time, now)


def validate_editable(status: SessionStatus, invoice_item_id: object | None) -> dict | None:
    """update() is refused for billed or running sessions."""
    if invoice_item_id is not None:
        return {
            "error_code": "SESSION_BILLED",
            "message": "Cannot update a billed session",
        }
    if status == SessionStatus.RUNNING:
        return {
            "error_code": "SESSION_RUNNING",
            "message": "Cannot update while timer is running. Stop it first.",
        }
    return None


def validate_deletable(invoice_item_id: object | None) -> dict | None:
    if invoice_item_id is not None:
        return {
            "error_code": "SESSION_BILLED",
            "message": "Cannot delete a billed session",
        }
    return None


def validate_bulk_members(
    members: Iterable[tuple[SessionStatus, object | None]],
) -> dict | None:
    """Whole batch fails if any member is billed or running."""
    members = list(members)
    if any(item_id is not None for _, item_id in members):
        return {
            "error_code": "SESSION_BILLED",
            "message": "Cannot update billed sessions",
        }
    if any(status == SessionStatus.RUNNING for status, _ in members):
        return {
            "error_code": "SESSION_RUNNING",
            "message": "Cannot update running sessions",
        }
    return None


def recompute_amount(
    duration_seconds: int | None, hourly_rate_cents: int,
) -> int | None:
    """Amount after a manual duration/rate correction; None while unstopped."""
    if duration_seconds is None:
        return None
    return amount_for_duration(duration_seconds, hourly_rate_cents)
