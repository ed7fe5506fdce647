"""Tests for SLA timing rules."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from storepulse.config import DeadlineTier, SLAStatus
from storepulse.escalation.domain import SLAClock, SLAPolicy

ASSIGNED = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(hours=20), SLAStatus.ON_TIME),
        (timedelta(hours=24), SLAStatus.ON_TIME),
        (timedelta(hours=24, minutes=1), SLAStatus.DELAYED),
        (timedelta(hours=30), SLAStatus.DELAYED),
        (timedelta(hours=100), SLAStatus.DELAYED),
    ],
)
def test_resolved_task_verdict(elapsed, expected):
    """Resolution within 24 hours is on time, anything later is delayed."""
    assert SLAClock.resolve_sla_status(ASSIGNED, ASSIGNED + elapsed) == expected


def test_open_task_is_always_pending():
    """Open tasks stay PENDING however old they are."""
    assert SLAClock.resolve_sla_status(ASSIGNED) == SLAStatus.PENDING
    assert SLAClock.resolve_sla_status(ASSIGNED - timedelta(days=30)) == SLAStatus.PENDING


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(hours=0), DeadlineTier.WITHIN_24H),
        (timedelta(hours=24), DeadlineTier.WITHIN_24H),
        (timedelta(hours=25), DeadlineTier.WITHIN_48H),
        (timedelta(hours=48), DeadlineTier.WITHIN_48H),
        (timedelta(hours=49), DeadlineTier.OVERDUE),
    ],
)
def test_deadline_tier(elapsed, expected):
    assert SLAClock.deadline_tier(ASSIGNED, ASSIGNED + elapsed) == expected


def test_elapsed_hours_truncates():
    """Display hours are whole hours, rounded down."""
    assert SLAClock.elapsed_hours(ASSIGNED, ASSIGNED + timedelta(hours=23, minutes=59)) == 23
    assert SLAClock.elapsed_hours(ASSIGNED, ASSIGNED + timedelta(hours=24, minutes=1)) == 24


def test_naive_datetimes_are_treated_as_utc():
    naive = ASSIGNED.replace(tzinfo=None)
    assert SLAClock.elapsed(naive, ASSIGNED + timedelta(hours=5)) == timedelta(hours=5)
    assert SLAClock.as_utc(naive) == ASSIGNED


def test_policy_defaults():
    policy = SLAPolicy()
    assert policy.on_time_hours == 24
    assert policy.overdue_hours == 48
    assert policy.resolve_sla_status(ASSIGNED, ASSIGNED + timedelta(hours=24)) == SLAStatus.ON_TIME


def test_policy_custom_thresholds():
    policy = SLAPolicy(on_time_hours=12, overdue_hours=36)
    assert policy.resolve_sla_status(ASSIGNED, ASSIGNED + timedelta(hours=13)) == SLAStatus.DELAYED
    assert policy.deadline_tier(ASSIGNED, ASSIGNED + timedelta(hours=20)) == DeadlineTier.WITHIN_48H


def test_policy_rejects_inverted_thresholds():
    with pytest.raises(ValidationError):
        SLAPolicy(on_time_hours=48, overdue_hours=24)


def test_policy_is_immutable():
    policy = SLAPolicy()
    with pytest.raises(ValidationError):
        policy.on_time_hours = 12
