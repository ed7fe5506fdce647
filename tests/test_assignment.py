"""Tests for turning negative reviews into tasks."""
import pytest
from sqlalchemy import func, select

from conftest import T0
from storepulse.config import SLAStatus, TaskStatus
from storepulse.core import ResourceNotFoundException, ValidationException
from storepulse.escalation.application import TaskAssignmentService
from storepulse.escalation.infrastructure import TaskModel


@pytest.mark.asyncio
async def test_negative_review_creates_task_for_owner(uow, clock, add_review):
    """A 2-star review in Men Casual goes to the section's team lead."""
    await add_review("R1", rating=2)

    task = await TaskAssignmentService(uow, clock).assign("R1")
    await uow.commit()

    assert task is not None
    assert task.id is not None
    assert task.review_id == "R1"
    assert task.shop_id == "S1"
    assert task.section_id == "SEC-MC"
    assert task.assigned_to_id == "U1"
    assert task.status == TaskStatus.PENDING
    assert task.sla_status == SLAStatus.PENDING
    assert task.assigned_at == T0
    assert task.resolved_at is None

    review = await uow.reviews.get_by_id("R1")
    assert review.is_processed is True


@pytest.mark.asyncio
async def test_rating_three_is_negative(uow, clock, add_review):
    await add_review("R1", rating=3)

    task = await TaskAssignmentService(uow, clock).assign("R1")

    assert task is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [4, 5])
async def test_positive_review_is_ignored(uow, clock, add_review, rating):
    """Positive reviews create nothing and stay unprocessed."""
    await add_review("R1", rating=rating)

    task = await TaskAssignmentService(uow, clock).assign("R1")
    await uow.commit()

    assert task is None
    assert await uow.tasks.get_by_review_id("R1") is None
    review = await uow.reviews.get_by_id("R1")
    assert review.is_processed is False


@pytest.mark.asyncio
async def test_section_without_eligible_owner_creates_unassigned_task(uow, clock, add_review):
    """Inactive team leads and non-TL users are not owners."""
    await add_review("R1", section_id="SEC-KIDS")

    task = await TaskAssignmentService(uow, clock).assign("R1")

    assert task is not None
    assert task.assigned_to_id is None
    assert task.status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_unknown_review_raises(uow, clock, seeded):
    with pytest.raises(ResourceNotFoundException):
        await TaskAssignmentService(uow, clock).assign("missing")


@pytest.mark.asyncio
async def test_second_assign_creates_no_duplicate(uow, clock, session, add_review):
    """At most one task per review."""
    await add_review("R1")
    service = TaskAssignmentService(uow, clock)

    first = await service.assign("R1")
    await uow.commit()
    second = await service.assign("R1")
    await uow.commit()

    assert first is not None
    assert second is None
    count = await session.scalar(
        select(func.count(TaskModel.id)).where(TaskModel.review_id == "R1")
    )
    assert count == 1


@pytest.mark.asyncio
async def test_unprocessed_listing_is_oldest_first_and_negative_only(uow, add_review):
    await add_review("R-new", created_at=T0)
    await add_review("R-old", created_at=T0.replace(hour=1))
    await add_review("R-pos", rating=5, created_at=T0.replace(hour=2))
    await add_review("R-done", is_processed=True)

    reviews = await uow.reviews.list_unprocessed_negative()

    assert [r.id for r in reviews] == ["R-old", "R-new"]


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_out_of_range_rating_is_rejected(uow, clock, add_review, rating):
    """Stored ratings outside 1-5 are refused per review, not on load."""
    await add_review("R-bad", rating=rating)

    reviews = await uow.reviews.list_unprocessed_negative()
    with pytest.raises(ValidationException):
        await TaskAssignmentService(uow, clock).assign("R-bad")

    assert [r.id for r in reviews] == (["R-bad"] if rating < 4 else [])
    assert await uow.tasks.get_by_review_id("R-bad") is None
