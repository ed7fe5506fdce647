"""
Escalation Application Services
================================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, unit of work),
  not concrete implementations
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from storepulse.config import (
    CronJobName,
    CronJobStatus,
    SLAStatus,
    TaskStatus,
)
from storepulse.core import (
    ApplicationException,
    BatchExecutionException,
    InvalidTaskStateException,
    ResourceNotFoundException,
    ValidationException,
)
from storepulse.escalation.application.dto import (
    SectionMetrics,
    TaskFilters,
    TaskListResponse,
    TaskResponse,
    TaskSummaryResponse,
    TeamLeadMetrics,
    TeamLeadSummaryResponse,
)
from storepulse.escalation.domain import (
    AssignmentRunResult,
    CronJobLog,
    ResponsibleUser,
    Review,
    SLAClock,
    SLAPolicy,
    SweepResult,
    SweepRunResult,
    Task,
    utc_now,
)
from storepulse.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

Clock = Callable[[], datetime]


# ========== Repository Interfaces (Dependency Inversion) ==========

class IReviewRepository(ABC):
    """Interface for review data access."""

    @abstractmethod
    async def get_by_id(self, review_id: str) -> Optional[Review]:
        """Get review by ID."""

    @abstractmethod
    async def list_unprocessed_negative(self) -> List[Review]:
        """Negative reviews not yet turned into tasks, oldest first."""

    @abstractmethod
    async def mark_processed(self, review_id: str) -> None:
        """Flag review as processed."""


class IResponsibilityDirectory(ABC):
    """Interface for the (shop, section) -> team lead mapping."""

    @abstractmethod
    async def find_responsible_user(
        self,
        shop_id: str,
        section_id: str
    ) -> Optional[ResponsibleUser]:
        """Active team lead responsible for the section in the shop."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[ResponsibleUser]:
        """Any user by ID, active or not."""

    @abstractmethod
    async def get_users(self, user_ids: List[str]) -> List[ResponsibleUser]:
        """Users for the given IDs, ordered by name."""

    @abstractmethod
    async def section_names(self, section_ids: List[str]) -> Dict[str, str]:
        """Map of section ID to section name."""

    @abstractmethod
    async def sections_of(self, user_id: str, shop_id: Optional[str] = None) -> List[str]:
        """Names of the sections a user is responsible for."""


class ITaskRepository(ABC):
    """Interface for task data access."""

    @abstractmethod
    async def get_by_id(self, task_id: str) -> Optional[Task]:
        """Get task by ID."""

    @abstractmethod
    async def get_by_review_id(self, review_id: str) -> Optional[Task]:
        """Get the task raised from a review, if any."""

    @abstractmethod
    async def create(self, task: Task) -> Task:
        """Persist a new task and return it with its ID."""

    @abstractmethod
    async def list_by_status(self, status: str) -> List[Task]:
        """All tasks with the given status."""

    @abstractmethod
    async def update_sla_status(self, task_id: str, sla_status: str) -> bool:
        """Set sla_status on an open task. False if the task is no longer open."""

    @abstractmethod
    async def resolve(
        self,
        task_id: str,
        status: str,
        sla_status: str,
        resolved_at: datetime,
        remarks: str
    ) -> bool:
        """Close an open task. False if it was not open any more."""

    @abstractmethod
    async def list(
        self,
        filters: TaskFilters,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Task]:
        """List tasks with filters, newest assignment first."""

    @abstractmethod
    async def count(self, filters: TaskFilters) -> int:
        """Count tasks matching filters."""


class ICronJobLogRepository(ABC):
    """Interface for the append-only batch run log."""

    @abstractmethod
    async def append(self, log: CronJobLog) -> CronJobLog:
        """Append one run record."""

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> List[CronJobLog]:
        """Most recent runs first."""


class IUnitOfWork(ABC):
    """Repositories sharing one transaction."""

    reviews: IReviewRepository
    directory: IResponsibilityDirectory
    tasks: ITaskRepository
    cron_logs: ICronJobLogRepository

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Roll back the current transaction."""


class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get current SLA policy."""


def _current_policy(provider: Optional[ISLAPolicyProvider]) -> SLAPolicy:
    if provider is None:
        return SLAPolicy()
    return provider.get_policy()


# ========== Application Services ==========

class TaskAssignmentService:
    """
    Turns a negative review into a task owned by the responsible team lead.

    The SLA clock starts when the task is created.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._clock = clock

    async def assign(self, review_id: str) -> Optional[Task]:
        """
        Create the task for a review.

        Args:
            review_id: Review to escalate

        Returns:
            The created Task, or None when the review is positive or
            already has a task

        Raises:
            ResourceNotFoundException: If the review does not exist
            ValidationException: If the stored rating is outside 1-5
        """
        review = await self._uow.reviews.get_by_id(review_id)
        if review is None:
            raise ResourceNotFoundException("Review", review_id)

        if not review.has_valid_rating:
            raise ValidationException(
                f"Review {review_id} has rating {review.rating}, expected 1-5",
                {"review_id": review_id, "rating": review.rating}
            )

        if not review.is_negative:
            logger.info(
                "Skipping positive review",
                extra={"review_id": review_id, "rating": review.rating}
            )
            return None

        existing = await self._uow.tasks.get_by_review_id(review_id)
        if existing is not None:
            # Retry after a crash between task creation and flagging
            logger.warning(
                "Review already has a task",
                extra={"review_id": review_id, "task_id": existing.id}
            )
            await self._uow.reviews.mark_processed(review_id)
            return None

        owner = await self._uow.directory.find_responsible_user(
            review.shop_id, review.section_id
        )

        task = await self._uow.tasks.create(
            Task.open_for(
                review,
                assigned_to_id=owner.id if owner else None,
                assigned_at=self._clock()
            )
        )

        await self._uow.reviews.mark_processed(review_id)

        logger.info(
            "Task created",
            extra={
                "task_id": task.id,
                "review_id": review_id,
                "assigned_to": owner.name if owner else "unassigned"
            }
        )

        return task


class SLASweepService:
    """
    Re-evaluates the SLA status of every open task.

    Writes only when the recomputed status differs from the stored one,
    so back-to-back runs are idempotent.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        policy_provider: Optional[ISLAPolicyProvider] = None
    ):
        self._uow = uow
        self._policy_provider = policy_provider

    async def sweep(self) -> SweepResult:
        policy = _current_policy(self._policy_provider)
        open_tasks = await self._uow.tasks.list_by_status(TaskStatus.PENDING)

        result = SweepResult(tasks_inspected=len(open_tasks))

        for task in open_tasks:
            new_status = policy.resolve_sla_status(task.assigned_at)
            if new_status == task.sla_status:
                continue

            if await self._uow.tasks.update_sla_status(task.id, new_status):
                result.tasks_updated += 1
                logger.info(
                    "Task SLA status changed",
                    extra={
                        "task_id": task.id,
                        "from_status": task.sla_status,
                        "to_status": new_status
                    }
                )

        return result

    async def sweep_open_tasks(self) -> int:
        """Sweep open tasks and return how many were inspected."""
        result = await self.sweep()
        return result.tasks_inspected


class TaskResolutionService:
    """Closes a task and freezes its final SLA verdict."""

    def __init__(
        self,
        uow: IUnitOfWork,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._policy_provider = policy_provider
        self._clock = clock

    async def resolve(self, task_id: str, remarks: str) -> Task:
        """
        Resolve an open task.

        Args:
            task_id: Task to close
            remarks: Action taken; must not be blank

        Returns:
            The updated Task

        Raises:
            ValidationException: If remarks are blank
            ResourceNotFoundException: If the task does not exist
            InvalidTaskStateException: If the task is already resolved
        """
        remarks = (remarks or "").strip()
        if not remarks:
            raise ValidationException("Remarks are required", {"task_id": task_id})

        task = await self._uow.tasks.get_by_id(task_id)
        if task is None:
            raise ResourceNotFoundException("Task", task_id)

        if not task.is_open:
            raise InvalidTaskStateException(task_id, task.status)

        policy = _current_policy(self._policy_provider)
        resolved_at = self._clock()
        sla_status = policy.resolve_sla_status(task.assigned_at, resolved_at)
        status = TaskStatus.ON_TIME if sla_status == SLAStatus.ON_TIME else TaskStatus.DELAYED

        updated = await self._uow.tasks.resolve(
            task_id,
            status=status,
            sla_status=sla_status,
            resolved_at=resolved_at,
            remarks=remarks
        )
        if not updated:
            # Resolved concurrently between the read and the write
            current = await self._uow.tasks.get_by_id(task_id)
            raise InvalidTaskStateException(task_id, current.status if current else task.status)

        logger.info(
            "Task resolved",
            extra={"task_id": task_id, "sla_status": sla_status}
        )

        task.status = status
        task.sla_status = sla_status
        task.resolved_at = resolved_at
        task.remarks = remarks
        return task


class TaskQueryService:
    """Read-side queries over tasks, with display timing fields."""

    def __init__(
        self,
        uow: IUnitOfWork,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._policy_provider = policy_provider
        self._clock = clock

    def to_response(self, task: Task, policy: Optional[SLAPolicy] = None) -> TaskResponse:
        """Attach hours_elapsed and deadline_tier to a task."""
        policy = policy or _current_policy(self._policy_provider)
        now = self._clock()
        until = task.resolved_at or now
        return TaskResponse.from_entity(
            task,
            hours_elapsed=SLAClock.elapsed_hours(task.assigned_at, until),
            deadline_tier=policy.deadline_tier(task.assigned_at, until),
        )

    async def get_task(self, task_id: str) -> TaskResponse:
        task = await self._uow.tasks.get_by_id(task_id)
        if task is None:
            raise ResourceNotFoundException("Task", task_id)
        return self.to_response(task)

    async def list_tasks(
        self,
        filters: TaskFilters,
        page: int = 1,
        page_size: int = 20
    ) -> TaskListResponse:
        policy = _current_policy(self._policy_provider)
        tasks = await self._uow.tasks.list(
            filters, limit=page_size, offset=(page - 1) * page_size
        )
        total = await self._uow.tasks.count(filters)

        return TaskListResponse(
            items=[self.to_response(task, policy) for task in tasks],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if page_size else 0,
        )

    async def summarize(self, shop_id: Optional[str] = None) -> TaskSummaryResponse:
        """
        SLA breakdown over all tasks, or those of one shop.

        Includes per-section and per-team-lead metrics; unassigned tasks
        count towards the totals and their section only.
        """
        tasks = await self._uow.tasks.list(TaskFilters(shop_id=shop_id))
        directory = self._uow.directory
        counts = _SLACounts.of(tasks)

        by_section = _group_by(tasks, lambda t: t.section_id)
        names = await directory.section_names(list(by_section))
        section_metrics = []
        for section_id, section_tasks in by_section.items():
            section_counts = _SLACounts.of(section_tasks)
            section_metrics.append(SectionMetrics(
                section_id=section_id,
                section_name=names.get(section_id),
                total_tasks=section_counts.total,
                on_time_count=section_counts.on_time,
                delayed_count=section_counts.delayed,
                pending_count=section_counts.pending,
                on_time_percentage=_percentage(section_counts.on_time, section_counts.total),
            ))
        section_metrics.sort(key=lambda m: (m.section_name or "", m.section_id))

        by_owner = _group_by(
            [t for t in tasks if t.assigned_to_id], lambda t: t.assigned_to_id
        )
        tl_metrics = [
            _team_lead_metrics(
                user,
                by_owner[user.id],
                await directory.sections_of(user.id, shop_id)
            )
            for user in await directory.get_users(list(by_owner))
        ]

        return TaskSummaryResponse(
            shop_id=shop_id,
            total_tasks=counts.total,
            on_time_count=counts.on_time,
            delayed_count=counts.delayed,
            pending_count=counts.pending,
            on_time_percentage=_percentage(counts.on_time, counts.total),
            delayed_percentage=_percentage(counts.delayed, counts.total),
            pending_percentage=_percentage(counts.pending, counts.total),
            average_resolution_hours=_average_resolution_hours(tasks),
            section_metrics=section_metrics,
            tl_metrics=tl_metrics,
        )

    async def summarize_team_lead(
        self,
        user_id: str,
        recent_limit: int = 20
    ) -> TeamLeadSummaryResponse:
        """
        Metrics for one team lead plus their most recently assigned tasks.

        Raises:
            ResourceNotFoundException: If the user does not exist
        """
        user = await self._uow.directory.get_user(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)

        tasks = await self._uow.tasks.list(TaskFilters(assigned_to_id=user_id))
        metrics = _team_lead_metrics(
            user, tasks, await self._uow.directory.sections_of(user_id)
        )

        policy = _current_policy(self._policy_provider)
        return TeamLeadSummaryResponse(
            **metrics.model_dump(),
            recent_tasks=[self.to_response(t, policy) for t in tasks[:recent_limit]],
        )


@dataclass
class _SLACounts:
    total: int = 0
    on_time: int = 0
    delayed: int = 0
    pending: int = 0

    @classmethod
    def of(cls, tasks: List[Task]) -> "_SLACounts":
        return cls(
            total=len(tasks),
            on_time=sum(1 for t in tasks if t.sla_status == SLAStatus.ON_TIME),
            delayed=sum(1 for t in tasks if t.sla_status == SLAStatus.DELAYED),
            pending=sum(1 for t in tasks if t.sla_status == SLAStatus.PENDING),
        )


def _group_by(tasks: List[Task], key: Callable[[Task], str]) -> Dict[str, List[Task]]:
    groups: Dict[str, List[Task]] = {}
    for task in tasks:
        groups.setdefault(key(task), []).append(task)
    return groups


def _average_resolution_hours(tasks: List[Task]) -> float:
    """Mean whole hours from assignment to resolution, over resolved tasks."""
    hours = [
        SLAClock.elapsed_hours(t.assigned_at, t.resolved_at)
        for t in tasks if t.resolved_at
    ]
    return round(sum(hours) / len(hours), 1) if hours else 0.0


def _team_lead_metrics(
    user: ResponsibleUser,
    tasks: List[Task],
    sections: List[str]
) -> TeamLeadMetrics:
    counts = _SLACounts.of(tasks)
    return TeamLeadMetrics(
        user_id=user.id,
        user_name=user.name,
        sections=sections,
        total_tasks=counts.total,
        on_time_count=counts.on_time,
        delayed_count=counts.delayed,
        pending_count=counts.pending,
        on_time_percentage=_percentage(counts.on_time, counts.total),
        average_resolution_hours=_average_resolution_hours(tasks),
    )


def _error_summary(exc: Exception) -> str:
    """
    Short, loggable description of a failure.

    Database errors are reduced to the driver error, without SQL text or
    bound parameters.
    """
    if isinstance(exc, ApplicationException):
        return exc.message
    orig = getattr(exc, "orig", None)
    if orig is not None:
        return f"{type(orig).__name__}: {orig}"
    return str(exc) or type(exc).__name__


def _percentage(part: int, total: int) -> float:
    """Percentage rounded to one decimal; 0 for an empty set."""
    if total == 0:
        return 0.0
    return round(part / total * 100, 1)


class EscalationJobRunner:
    """
    Batch entry points invoked by the scheduler or a manual trigger.

    Each run appends exactly one cron log record.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._policy_provider = policy_provider
        self._clock = clock
        self._assignment = TaskAssignmentService(uow, clock)
        self._sweeper = SLASweepService(uow, policy_provider)

    async def run_daily_assignment(self) -> AssignmentRunResult:
        """
        Escalate every unprocessed negative review, oldest first.

        Each review is committed on its own; a failing review is rolled
        back, recorded in the errors list and the batch moves on.

        Raises:
            BatchExecutionException: If the pending reviews cannot be read
        """
        job = CronJobName.DAILY_TASK_ASSIGNMENT
        started_at = self._clock()
        logger.info("Starting daily task assignment")

        try:
            reviews = await self._uow.reviews.list_unprocessed_negative()
        except Exception as e:
            await self._uow.rollback()
            error = _error_summary(e)
            logger.error("Daily task assignment failed", extra={"error": error})
            await self._append_log(CronJobLog(
                id=None,
                job_name=job,
                status=CronJobStatus.FAILED,
                message=error,
                started_at=started_at,
                completed_at=self._clock(),
            ))
            raise BatchExecutionException(job, error) from e

        result = AssignmentRunResult(started_at=started_at, completed_at=started_at)

        with log_latency(logger, "daily_task_assignment", reviews=len(reviews)):
            for review in reviews:
                result.reviews_processed += 1
                try:
                    task = await self._assignment.assign(review.id)
                    await self._uow.commit()
                except Exception as e:
                    await self._uow.rollback()
                    error = _error_summary(e)
                    result.errors.append(f"Failed to process review {review.id}: {error}")
                    logger.error(
                        "Failed to process review",
                        extra={"review_id": review.id, "error": error}
                    )
                    continue

                if task is not None:
                    result.tasks_created += 1

        result.completed_at = self._clock()

        await self._append_log(CronJobLog(
            id=None,
            job_name=job,
            status=result.status,
            message="\n".join(result.errors) or None,
            reviews_processed=result.reviews_processed,
            tasks_created=result.tasks_created,
            started_at=result.started_at,
            completed_at=result.completed_at,
        ))

        logger.info(
            "Daily task assignment completed",
            extra={
                "status": result.status,
                "reviews_processed": result.reviews_processed,
                "tasks_created": result.tasks_created,
                "errors": len(result.errors)
            }
        )

        return result

    async def run_sla_sweep(self) -> SweepRunResult:
        """
        Sweep open tasks and log the run.

        Raises:
            BatchExecutionException: If the sweep fails
        """
        job = CronJobName.SLA_STATUS_SWEEP
        started_at = self._clock()

        try:
            sweep = await self._sweeper.sweep()
            await self._uow.commit()
        except Exception as e:
            await self._uow.rollback()
            error = _error_summary(e)
            logger.error("SLA sweep failed", extra={"error": error})
            await self._append_log(CronJobLog(
                id=None,
                job_name=job,
                status=CronJobStatus.FAILED,
                message=error,
                started_at=started_at,
                completed_at=self._clock(),
            ))
            raise BatchExecutionException(job, error) from e

        result = SweepRunResult(
            started_at=started_at,
            completed_at=self._clock(),
            tasks_inspected=sweep.tasks_inspected,
            tasks_updated=sweep.tasks_updated,
        )

        await self._append_log(CronJobLog(
            id=None,
            job_name=job,
            status=CronJobStatus.SUCCESS,
            tasks_inspected=result.tasks_inspected,
            tasks_updated=result.tasks_updated,
            started_at=result.started_at,
            completed_at=result.completed_at,
        ))

        logger.info(
            "SLA sweep completed",
            extra={
                "tasks_inspected": result.tasks_inspected,
                "tasks_updated": result.tasks_updated
            }
        )

        return result

    async def list_logs(self, limit: int = 20) -> List[CronJobLog]:
        return await self._uow.cron_logs.list_recent(limit)

    async def _append_log(self, log: CronJobLog) -> None:
        await self._uow.cron_logs.append(log)
        await self._uow.commit()
