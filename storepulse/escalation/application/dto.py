"""
Escalation Application DTOs
============================

Data Transfer Objects for the escalation API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from storepulse.escalation.domain import CronJobLog, SLAClock, Task


# ========== Type Aliases for Literals ==========
TaskStatusStr = Literal["PENDING", "ON_TIME", "DELAYED"]
SLAStatusStr = Literal["ON_TIME", "DELAYED", "PENDING"]
DeadlineTierStr = Literal["within_24h", "within_48h", "overdue"]
CronJobStatusStr = Literal["SUCCESS", "PARTIAL_SUCCESS", "FAILED"]


# ========== Request DTOs ==========

class ResolveTaskRequest(BaseModel):
    """Request body for resolving a task."""
    remarks: str = Field(..., description="Notes about the action taken")

    @field_validator("remarks")
    @classmethod
    def validate_remarks(cls, v: str) -> str:
        """Reject blank remarks; store them trimmed."""
        v = v.strip()
        if not v:
            raise ValueError("remarks are required")
        return v


class TaskFilters(BaseModel):
    """Query filters for task listings."""
    status: Optional[TaskStatusStr] = None
    sla_status: Optional[SLAStatusStr] = None
    shop_id: Optional[str] = None
    section_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    start_date: Optional[datetime] = Field(None, description="assigned_at lower bound")
    end_date: Optional[datetime] = Field(None, description="assigned_at upper bound")

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Compare in UTC; stores without tz support hold UTC wall time."""
        return SLAClock.as_utc(v) if v else None


# ========== Response DTOs ==========

class TaskResponse(BaseModel):
    """Task with display-only timing fields."""
    id: str
    review_id: str
    shop_id: str
    section_id: str
    assigned_to_id: Optional[str] = None
    status: TaskStatusStr
    sla_status: SLAStatusStr
    assigned_at: datetime
    resolved_at: Optional[datetime] = None
    remarks: Optional[str] = None
    hours_elapsed: int = Field(..., description="Whole hours since assignment (until resolution if closed)")
    deadline_tier: DeadlineTierStr

    @classmethod
    def from_entity(cls, task: Task, hours_elapsed: int, deadline_tier: str) -> "TaskResponse":
        return cls(
            id=task.id,
            review_id=task.review_id,
            shop_id=task.shop_id,
            section_id=task.section_id,
            assigned_to_id=task.assigned_to_id,
            status=task.status,
            sla_status=task.sla_status,
            assigned_at=task.assigned_at,
            resolved_at=task.resolved_at,
            remarks=task.remarks,
            hours_elapsed=hours_elapsed,
            deadline_tier=deadline_tier,
        )


class TaskListResponse(BaseModel):
    """Paginated task listing."""
    items: List[TaskResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AssignResponse(BaseModel):
    """Response for single-review reprocessing."""
    task: Optional[TaskResponse] = Field(None, description="Created task, null if none was created")


class SectionMetrics(BaseModel):
    """SLA breakdown for one section."""
    section_id: str
    section_name: Optional[str] = None
    total_tasks: int
    on_time_count: int
    delayed_count: int
    pending_count: int
    on_time_percentage: float


class TeamLeadMetrics(BaseModel):
    """SLA breakdown for the tasks owned by one team lead."""
    user_id: str
    user_name: str
    sections: List[str] = Field(default_factory=list)
    total_tasks: int
    on_time_count: int
    delayed_count: int
    pending_count: int
    on_time_percentage: float
    average_resolution_hours: float


class TaskSummaryResponse(BaseModel):
    """SLA breakdown for a set of tasks."""
    shop_id: Optional[str] = None
    total_tasks: int
    on_time_count: int
    delayed_count: int
    pending_count: int
    on_time_percentage: float
    delayed_percentage: float
    pending_percentage: float
    average_resolution_hours: float = Field(..., description="Mean whole hours to resolve, over resolved tasks")
    section_metrics: List[SectionMetrics] = Field(default_factory=list)
    tl_metrics: List[TeamLeadMetrics] = Field(default_factory=list, description="Assigned tasks only")


class TeamLeadSummaryResponse(TeamLeadMetrics):
    """Team lead dashboard: metrics plus the most recently assigned tasks."""
    recent_tasks: List[TaskResponse] = Field(default_factory=list)


class AssignmentRunResponse(BaseModel):
    """Response for the daily assignment batch."""
    success: bool
    status: CronJobStatusStr
    reviews_processed: int
    tasks_created: int
    errors: List[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime


class SweepRunResponse(BaseModel):
    """Response for an SLA sweep run."""
    success: bool
    tasks_inspected: int
    tasks_updated: int
    started_at: datetime
    completed_at: datetime


class CronJobLogResponse(BaseModel):
    """One cron log entry."""
    id: str
    job_name: str
    status: CronJobStatusStr
    message: Optional[str] = None
    reviews_processed: int
    tasks_created: int
    tasks_inspected: int
    tasks_updated: int
    started_at: datetime
    completed_at: datetime

    @classmethod
    def from_entity(cls, log: CronJobLog) -> "CronJobLogResponse":
        return cls(
            id=log.id,
            job_name=log.job_name,
            status=log.status,
            message=log.message,
            reviews_processed=log.reviews_processed,
            tasks_created=log.tasks_created,
            tasks_inspected=log.tasks_inspected,
            tasks_updated=log.tasks_updated,
            started_at=log.started_at,
            completed_at=log.completed_at,
        )
