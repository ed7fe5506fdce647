"""
Escalation Domain Entities
===========================

Pure Python domain entities for review escalation.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. Repositories
map ORM rows to these dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List

from storepulse.config import (
    MAX_RATING,
    MIN_RATING,
    POSITIVE_RATING_THRESHOLD,
    TERMINAL_TASK_STATUSES,
    CronJobStatus,
    SLAStatus,
    TaskStatus,
)


@dataclass
class Review:
    """
    Customer review of a shop section.

    Immutable apart from the is_processed flag, which the assignment
    engine sets exactly once. The rating is not validated on load;
    callers check has_valid_rating per review.
    """

    id: str
    shop_id: str
    section_id: str
    rating: int
    comment: str
    created_at: datetime
    is_processed: bool = False
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None

    @property
    def has_valid_rating(self) -> bool:
        return MIN_RATING <= self.rating <= MAX_RATING

    @property
    def is_negative(self) -> bool:
        """Only negative reviews escalate into tasks."""
        return self.rating < POSITIVE_RATING_THRESHOLD


@dataclass
class ResponsibleUser:
    """Team lead resolved from the responsibility directory."""

    id: str
    name: str
    email: str


@dataclass
class Task:
    """
    Work item raised from a negative review.

    status mirrors the SLA verdict once resolved; resolved_at, remarks and
    the final sla_status are frozen from then on.
    """

    id: Optional[str]  # None until persisted
    review_id: str
    shop_id: str
    section_id: str
    assigned_to_id: Optional[str]
    status: str
    sla_status: str
    assigned_at: datetime
    resolved_at: Optional[datetime] = None
    remarks: Optional[str] = None

    def __post_init__(self):
        if self.resolved_at and self.resolved_at < self.assigned_at:
            raise ValueError("resolved_at cannot be before assigned_at")

    @classmethod
    def open_for(
        cls,
        review: Review,
        assigned_to_id: Optional[str],
        assigned_at: datetime
    ) -> "Task":
        """New open task for a negative review; the SLA clock starts now."""
        return cls(
            id=None,
            review_id=review.id,
            shop_id=review.shop_id,
            section_id=review.section_id,
            assigned_to_id=assigned_to_id,
            status=TaskStatus.PENDING,
            sla_status=SLAStatus.PENDING,
            assigned_at=assigned_at,
        )

    @property
    def is_open(self) -> bool:
        """Check if task still awaits resolution."""
        return self.status == TaskStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        """Check if task has reached a terminal status."""
        return self.status in TERMINAL_TASK_STATUSES


@dataclass
class CronJobLog:
    """Append-only record of one batch run."""

    id: Optional[str]
    job_name: str
    status: str
    started_at: datetime
    completed_at: datetime
    message: Optional[str] = None
    reviews_processed: int = 0
    tasks_created: int = 0
    tasks_inspected: int = 0
    tasks_updated: int = 0


@dataclass
class AssignmentRunResult:
    """Summary of one daily assignment batch."""

    started_at: datetime
    completed_at: datetime
    reviews_processed: int = 0
    tasks_created: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def status(self) -> str:
        """SUCCESS, PARTIAL_SUCCESS, or FAILED when every review failed."""
        if not self.errors:
            return CronJobStatus.SUCCESS
        if len(self.errors) >= self.reviews_processed:
            return CronJobStatus.FAILED
        return CronJobStatus.PARTIAL_SUCCESS


@dataclass
class SweepResult:
    """Counts from one pass over open tasks."""

    tasks_inspected: int = 0
    tasks_updated: int = 0


@dataclass
class SweepRunResult:
    """Summary of one logged SLA sweep run."""

    started_at: datetime
    completed_at: datetime
    tasks_inspected: int = 0
    tasks_updated: int = 0
    success: bool = True
