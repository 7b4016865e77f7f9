"""Session Transitions — state machine table, duration rounding, billable amounts.

Tests:
    - Legal moves: running<->paused, either -> stopped; stopped is terminal
    - Rejections carry INVALID_TRANSITION and a specific message
    - Durations round UP to 900s increments, never below one increment
    - Edit/delete guards for billed and running sessions
"""

from datetime import datetime, timedelta, timezone

import pytest

from invoicer.core.domain_types import SessionAction, SessionStatus
from invoicer.core.session_transitions import (
    ALLOWED_TRANSITIONS,
    as_utc,
    compute_stop,
    elapsed_seconds,
    live_elapsed_seconds,
    recompute_amount,
    round_up_duration,
    sources_for,
    validate_bulk_members,
    validate_deletable,
    validate_editable,
    validate_transition,
)

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ─── State machine ──────────────────────────────────────────────

def test_stopped_is_terminal():
    assert ALLOWED_TRANSITIONS[SessionStatus.STOPPED] == frozenset()


@pytest.mark.parametrize("current, action", [
    (SessionStatus.RUNNING, SessionAction.PAUSE),
    (SessionStatus.RUNNING, SessionAction.STOP),
    (SessionStatus.PAUSED, SessionAction.RESUME),
    (SessionStatus.PAUSED, SessionAction.STOP),
])
def test_legal_transitions(current, action):
    assert validate_transition(current, action) is None


@pytest.mark.parametrize("current, action, message", [
    (SessionStatus.PAUSED, SessionAction.PAUSE, "Session is already paused"),
    (SessionStatus.STOPPED, SessionAction.PAUSE, "Cannot pause a stopped session"),
    (SessionStatus.RUNNING, SessionAction.RESUME, "Session is not paused"),
    (SessionStatus.STOPPED, SessionAction.RESUME, "Cannot resume a stopped session"),
    (SessionStatus.STOPPED, SessionAction.STOP, "Session is already stopped"),
])
def test_illegal_transitions(current, action, message):
    error = validate_transition(current, action)
    assert error["error_code"] == "INVALID_TRANSITION"
    assert error["message"] == message


def test_validate_transition_accepts_raw_status_strings():
    assert validate_transition("running", SessionAction.PAUSE) is None
    assert validate_transition("stopped", SessionAction.STOP) is not None


def test_sources_for_actions():
    assert sources_for(SessionAction.STOP) == {SessionStatus.RUNNING, SessionStatus.PAUSED}
    assert sources_for(SessionAction.PAUSE) == {SessionStatus.RUNNING}
    assert sources_for(SessionAction.RESUME) == {SessionStatus.PAUSED}


# ─── Duration accounting ────────────────────────────────────────

@pytest.mark.parametrize("actual, billed", [
    (0, 900),
    (1, 900),
    (61, 900),
    (900, 900),
    (901, 1800),
    (3600, 3600),
    (3601, 4500),
])
def test_round_up_duration(actual, billed):
    assert round_up_duration(actual) == billed


def test_elapsed_seconds_floors_and_never_negative():
    assert elapsed_seconds(START, START + timedelta(seconds=61, milliseconds=900)) == 61
    assert elapsed_seconds(START, START - timedelta(seconds=5)) == 0


def test_naive_datetimes_treated_as_utc():
    naive = START.replace(tzinfo=None)
    assert as_utc(naive) == START
    assert elapsed_seconds(naive, START + timedelta(seconds=30)) == 30


def test_compute_stop_rounds_and_prices():
    outcome = compute_stop(START, START + timedelta(seconds=1750), 10000)
    assert outcome.elapsed_seconds == 1750
    assert outcome.duration_seconds == 1800
    assert outcome.billable_amount_cents == 5000
    assert outcome.end_time == START + timedelta(seconds=1750)


def test_compute_stop_sixty_one_seconds_bills_one_increment():
    outcome = compute_stop(START, START + timedelta(seconds=61), 6000)
    assert outcome.duration_seconds == 900
    assert outcome.billable_amount_cents == 1500


def test_live_elapsed_for_running_and_stopped():
    now = START + timedelta(minutes=10)
    assert live_elapsed_seconds(SessionStatus.RUNNING, START, None, now) == 600
    assert live_elapsed_seconds(SessionStatus.PAUSED, START, None, now) == 600
    assert live_elapsed_seconds(SessionStatus.STOPPED, START, 900, now) == 900


# ─── Edit guards ────────────────────────────────────────────────

def test_billed_session_not_editable():
    error = validate_editable(SessionStatus.STOPPED, "item-id")
    assert error["error_code"] == "SESSION_BILLED"


def test_running_session_not_editable():
    error = validate_editable(SessionStatus.RUNNING, None)
    assert error["message"] == "Cannot update while timer is running. Stop it first."


def test_stopped_unbilled_session_editable():
    assert validate_editable(SessionStatus.STOPPED, None) is None
    assert validate_editable(SessionStatus.PAUSED, None) is None


def test_billed_session_not_deletable():
    assert validate_deletable("item-id")["message"] == "Cannot delete a billed session"
    assert validate_deletable(None) is None


def test_bulk_rejects_whole_batch():
    members = [(SessionStatus.STOPPED, None), (SessionStatus.RUNNING, None)]
    assert validate_bulk_members(members)["error_code"] == "SESSION_RUNNING"
    members = [(SessionStatus.STOPPED, None), (SessionStatus.STOPPED, "item")]
    assert validate_bulk_members(members)["error_code"] == "SESSION_BILLED"
    assert validate_bulk_members([(SessionStatus.PAUSED, None)]) is None


def test_recompute_amount():
    assert recompute_amount(None, 10000) is None
    assert recompute_amount(2700, 10000) == 7500
