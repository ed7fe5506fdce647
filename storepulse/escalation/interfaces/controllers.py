"""
Escalation Controllers (API Routes)
====================================

FastAPI routes for task escalation endpoints.

Controllers are thin - they delegate to application services. Application
exceptions are translated to HTTP errors by the handlers registered in
main.py.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storepulse.infrastructure.database import get_session
from storepulse.escalation.application import (
    AssignResponse,
    AssignmentRunResponse,
    CronJobLogResponse,
    EscalationJobRunner,
    ISLAPolicyProvider,
    ResolveTaskRequest,
    SweepRunResponse,
    TaskAssignmentService,
    TaskFilters,
    TaskListResponse,
    TaskQueryService,
    TaskResolutionService,
    TaskResponse,
    TaskSummaryResponse,
    TeamLeadSummaryResponse,
)
from storepulse.escalation.application.dto import SLAStatusStr, TaskStatusStr
from storepulse.escalation.infrastructure import SQLAlchemyUnitOfWork

from storepulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/escalation", tags=["Escalation"])


# ========== Dependencies ==========

async def get_unit_of_work(
    session: AsyncSession = Depends(get_session)
) -> SQLAlchemyUnitOfWork:
    """Unit of work bound to the request session."""
    return SQLAlchemyUnitOfWork(session)


def get_policy_provider(request: Request) -> Optional[ISLAPolicyProvider]:
    """SLA policy manager loaded at startup; None means default thresholds."""
    return getattr(request.app.state, "sla_policy_manager", None)


def get_query_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    policy_provider: Optional[ISLAPolicyProvider] = Depends(get_policy_provider)
) -> TaskQueryService:
    return TaskQueryService(uow, policy_provider)


def get_job_runner(
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    policy_provider: Optional[ISLAPolicyProvider] = Depends(get_policy_provider)
) -> EscalationJobRunner:
    return EscalationJobRunner(uow, policy_provider)


# ========== Route Handlers ==========

@router.post(
    "/reviews/{review_id}/assign",
    response_model=AssignResponse,
    summary="Escalate a single review",
    description="""
    Create the task for one review. Intended for reprocessing and testing;
    the daily batch normally does this.

    Returns `{"task": null}` when the review is positive (rating >= 4) or
    already has a task.
    """
)
async def assign_review(
    review_id: str,
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    query_service: TaskQueryService = Depends(get_query_service)
):
    task = await TaskAssignmentService(uow).assign(review_id)
    if task is None:
        return AssignResponse(task=None)
    return AssignResponse(task=query_service.to_response(task))


@router.get(
    "/tasks",
    response_model=TaskListResponse,
    summary="List tasks",
    description="""
    Tasks with optional filters, newest assignment first.

    `hours_elapsed` and `deadline_tier` are computed at request time and
    are not stored.
    """
)
async def list_tasks(
    task_status: Optional[TaskStatusStr] = Query(None, alias="status", description="PENDING | ON_TIME | DELAYED"),
    sla_status: Optional[SLAStatusStr] = Query(None, description="ON_TIME | DELAYED | PENDING"),
    shop_id: Optional[str] = Query(None),
    section_id: Optional[str] = Query(None),
    assigned_to_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None, description="assigned_at lower bound"),
    end_date: Optional[datetime] = Query(None, description="assigned_at upper bound"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    query_service: TaskQueryService = Depends(get_query_service)
):
    filters = TaskFilters(
        status=task_status,
        sla_status=sla_status,
        shop_id=shop_id,
        section_id=section_id,
        assigned_to_id=assigned_to_id,
        start_date=start_date,
        end_date=end_date,
    )
    return await query_service.list_tasks(filters, page=page, page_size=page_size)


@router.get(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    summary="Get a task",
    responses={404: {"description": "Task not found"}}
)
async def get_task(
    task_id: str,
    query_service: TaskQueryService = Depends(get_query_service)
):
    return await query_service.get_task(task_id)


@router.patch(
    "/tasks/{task_id}/resolve",
    response_model=TaskResponse,
    summary="Resolve a task",
    description="""
    Close a task and freeze its SLA verdict: `ON_TIME` when resolved within
    24 hours of assignment, `DELAYED` otherwise.

    **Example Request**:
    ```json
    {"remarks": "Replaced item and called the customer"}
    ```
    """,
    responses={
        404: {"description": "Task not found"},
        409: {"description": "Task already resolved"}
    }
)
async def resolve_task(
    task_id: str,
    body: ResolveTaskRequest,
    uow: SQLAlchemyUnitOfWork = Depends(get_unit_of_work),
    policy_provider: Optional[ISLAPolicyProvider] = Depends(get_policy_provider),
    query_service: TaskQueryService = Depends(get_query_service)
):
    task = await TaskResolutionService(uow, policy_provider).resolve(task_id, body.remarks)
    return query_service.to_response(task)


@router.get(
    "/dashboard",
    response_model=TaskSummaryResponse,
    summary="SLA summary",
    description="On-time / delayed / pending breakdown with per-section and per-team-lead metrics, optionally for one shop."
)
async def get_dashboard(
    shop_id: Optional[str] = Query(None),
    query_service: TaskQueryService = Depends(get_query_service)
):
    return await query_service.summarize(shop_id)


@router.get(
    "/team-leads/{user_id}/dashboard",
    response_model=TeamLeadSummaryResponse,
    summary="Team lead SLA summary",
    description="SLA metrics for one team lead and their most recently assigned tasks.",
    responses={404: {"description": "User not found"}}
)
async def get_team_lead_dashboard(
    user_id: str,
    recent_limit: int = Query(20, ge=1, le=100),
    query_service: TaskQueryService = Depends(get_query_service)
):
    return await query_service.summarize_team_lead(user_id, recent_limit=recent_limit)


@router.post(
    "/cron/assignment",
    response_model=AssignmentRunResponse,
    summary="Run the daily task assignment",
    description="""
    Manually trigger the batch that turns every unprocessed negative review
    into a task. Per-review failures are reported in `errors` and do not
    stop the batch.
    """
)
async def run_assignment(runner: EscalationJobRunner = Depends(get_job_runner)):
    result = await runner.run_daily_assignment()
    return AssignmentRunResponse(
        success=result.success,
        status=result.status,
        reviews_processed=result.reviews_processed,
        tasks_created=result.tasks_created,
        errors=result.errors,
        started_at=result.started_at,
        completed_at=result.completed_at,
    )


@router.post(
    "/cron/sla",
    response_model=SweepRunResponse,
    summary="Run the SLA sweep",
    description="Re-evaluate the SLA status of all open tasks."
)
async def run_sla_sweep(runner: EscalationJobRunner = Depends(get_job_runner)):
    result = await runner.run_sla_sweep()
    return SweepRunResponse(
        success=result.success,
        tasks_inspected=result.tasks_inspected,
        tasks_updated=result.tasks_updated,
        started_at=result.started_at,
        completed_at=result.completed_at,
    )


@router.get(
    "/cron/logs",
    response_model=List[CronJobLogResponse],
    summary="Recent batch runs"
)
async def get_cron_logs(
    limit: int = Query(20, ge=1, le=200),
    runner: EscalationJobRunner = Depends(get_job_runner)
):
    logs = await runner.list_logs(limit)
    return [CronJobLogResponse.from_entity(log) for log in logs]


# Export router for inclusion in main app
escalation_router = router
