"""Tests for the periodic SLA sweep of open tasks."""
from datetime import timedelta

import pytest

from conftest import T0
from storepulse.config import SLAStatus, TaskStatus
from storepulse.escalation.application import SLASweepService
from storepulse.escalation.infrastructure import TaskModel


@pytest.fixture
async def tasks(seeded, add_review):
    """Two open tasks (one with a stale verdict) and one resolved task."""
    for review_id in ("R1", "R2", "R3"):
        await add_review(review_id, is_processed=True)

    seeded.add_all([
        TaskModel(
            id="T-open", review_id="R1", shop_id="S1", section_id="SEC-MC",
            assigned_to_id="U1", status=TaskStatus.PENDING,
            sla_status=SLAStatus.PENDING, assigned_at=T0 - timedelta(hours=100),
        ),
        TaskModel(
            id="T-stale", review_id="R2", shop_id="S1", section_id="SEC-MC",
            assigned_to_id="U1", status=TaskStatus.PENDING,
            sla_status=SLAStatus.DELAYED, assigned_at=T0 - timedelta(hours=30),
        ),
        TaskModel(
            id="T-done", review_id="R3", shop_id="S1", section_id="SEC-MC",
            assigned_to_id="U1", status=TaskStatus.DELAYED,
            sla_status=SLAStatus.DELAYED, assigned_at=T0 - timedelta(hours=40),
            resolved_at=T0 - timedelta(hours=10), remarks="Refunded",
        ),
    ])
    await seeded.commit()


@pytest.mark.asyncio
async def test_sweep_inspects_only_open_tasks(uow, tasks):
    result = await SLASweepService(uow).sweep()

    assert result.tasks_inspected == 2


@pytest.mark.asyncio
async def test_sweep_keeps_open_tasks_pending(uow, tasks):
    """An open task is PENDING even after 100 hours."""
    result = await SLASweepService(uow).sweep()
    await uow.commit()

    assert result.tasks_updated == 1
    for task_id in ("T-open", "T-stale"):
        task = await uow.tasks.get_by_id(task_id)
        assert task.sla_status == SLAStatus.PENDING
        assert task.status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_sweep_is_idempotent(uow, tasks):
    """A second run writes nothing."""
    service = SLASweepService(uow)

    await service.sweep()
    await uow.commit()
    second = await service.sweep()

    assert second.tasks_inspected == 2
    assert second.tasks_updated == 0


@pytest.mark.asyncio
async def test_sweep_leaves_resolved_tasks_alone(uow, tasks):
    await SLASweepService(uow).sweep()
    await uow.commit()

    done = await uow.tasks.get_by_id("T-done")
    assert done.status == TaskStatus.DELAYED
    assert done.sla_status == SLAStatus.DELAYED
    assert done.remarks == "Refunded"
    assert done.resolved_at == T0 - timedelta(hours=10)


@pytest.mark.asyncio
async def test_sweep_open_tasks_returns_inspected_count(uow, tasks):
    assert await SLASweepService(uow).sweep_open_tasks() == 2


@pytest.mark.asyncio
async def test_sweep_with_no_open_tasks(uow, seeded):
    result = await SLASweepService(uow).sweep()

    assert result.tasks_inspected == 0
    assert result.tasks_updated == 0
