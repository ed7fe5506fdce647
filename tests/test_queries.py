"""Tests for task listings and the SLA dashboards."""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import T0
from storepulse.core import ResourceNotFoundException
from storepulse.escalation.application import (
    TaskAssignmentService,
    TaskFilters,
    TaskQueryService,
    TaskResolutionService,
)

PLUS_FIVE = timezone(timedelta(hours=5))


@pytest.fixture
async def team_tasks(uow, clock, add_review):
    """
    R1 and R2 in Men Casual (owned by U1), R3 in Kids (no owner).

    R1 is resolved after 10 hours; R2 is assigned an hour after R1.
    """
    for review_id, section_id in (("R1", "SEC-MC"), ("R2", "SEC-MC"), ("R3", "SEC-KIDS")):
        await add_review(review_id, section_id=section_id)

    assign = TaskAssignmentService(uow, clock)
    r1 = await assign.assign("R1")
    clock.advance(hours=1)
    await assign.assign("R2")
    await assign.assign("R3")
    await uow.commit()

    clock.advance(hours=9)
    await TaskResolutionService(uow, clock=clock).resolve(r1.id, "Exchanged the item")
    await uow.commit()


@pytest.mark.asyncio
async def test_date_filters_compare_in_utc(uow, clock, add_review):
    """A bound with an offset matches by instant, not by wall clock."""
    await add_review("R1")
    await TaskAssignmentService(uow, clock).assign("R1")
    await uow.commit()
    service = TaskQueryService(uow, clock=clock)

    # 10:00+05:00 is 05:00Z, before the 09:00Z assignment
    after = await service.list_tasks(TaskFilters(start_date=datetime(2024, 1, 1, 10, 0, tzinfo=PLUS_FIVE)))
    # 13:00+05:00 is 08:00Z
    before = await service.list_tasks(TaskFilters(end_date=datetime(2024, 1, 1, 13, 0, tzinfo=PLUS_FIVE)))

    assert after.total == 1
    assert before.total == 0


def test_filter_bounds_are_normalized_to_utc():
    filters = TaskFilters(
        start_date=datetime(2024, 1, 1, 10, 0, tzinfo=PLUS_FIVE),
        end_date=datetime(2024, 1, 1, 12, 0),
    )

    assert filters.start_date == datetime(2024, 1, 1, 5, 0, tzinfo=timezone.utc)
    assert filters.start_date.utcoffset() == timedelta(0)
    assert filters.end_date.tzinfo == timezone.utc


@pytest.mark.asyncio
async def test_summary_breaks_down_by_section(uow, clock, team_tasks):
    summary = await TaskQueryService(uow, clock=clock).summarize("S1")

    assert summary.total_tasks == 3
    assert [m.section_name for m in summary.section_metrics] == ["Kids", "Men Casual"]
    kids, men_casual = summary.section_metrics
    assert kids.total_tasks == 1
    assert kids.pending_count == 1
    assert kids.on_time_percentage == 0.0
    assert men_casual.section_id == "SEC-MC"
    assert men_casual.total_tasks == 2
    assert men_casual.on_time_count == 1
    assert men_casual.on_time_percentage == 50.0


@pytest.mark.asyncio
async def test_summary_breaks_down_by_team_lead(uow, clock, team_tasks):
    """Unassigned tasks have no team lead entry."""
    summary = await TaskQueryService(uow, clock=clock).summarize("S1")

    assert len(summary.tl_metrics) == 1
    asha = summary.tl_metrics[0]
    assert asha.user_id == "U1"
    assert asha.user_name == "Asha"
    assert asha.sections == ["Men Casual"]
    assert asha.total_tasks == 2
    assert asha.on_time_count == 1
    assert asha.pending_count == 1
    assert asha.average_resolution_hours == 10.0


@pytest.mark.asyncio
async def test_empty_summary(uow, clock, seeded):
    summary = await TaskQueryService(uow, clock=clock).summarize("S1")

    assert summary.total_tasks == 0
    assert summary.on_time_percentage == 0.0
    assert summary.section_metrics == []
    assert summary.tl_metrics == []


@pytest.mark.asyncio
async def test_team_lead_summary_lists_recent_tasks(uow, clock, team_tasks):
    summary = await TaskQueryService(uow, clock=clock).summarize_team_lead("U1", recent_limit=1)

    assert summary.total_tasks == 2
    assert summary.on_time_percentage == 50.0
    assert summary.sections == ["Men Casual"]
    assert [t.review_id for t in summary.recent_tasks] == ["R2"]
    assert summary.recent_tasks[0].hours_elapsed == 9


@pytest.mark.asyncio
async def test_team_lead_without_tasks(uow, clock, team_tasks):
    summary = await TaskQueryService(uow, clock=clock).summarize_team_lead("U3")

    assert summary.user_name == "Meera"
    assert summary.sections == ["Kids"]
    assert summary.total_tasks == 0
    assert summary.average_resolution_hours == 0.0
    assert summary.recent_tasks == []


@pytest.mark.asyncio
async def test_team_lead_summary_unknown_user(uow, clock, seeded):
    with pytest.raises(ResourceNotFoundException):
        await TaskQueryService(uow, clock=clock).summarize_team_lead("missing")
