"""
Escalation Application Layer
=============================

Application layer for the review escalation module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from storepulse.escalation.application.dto import (
    ResolveTaskRequest,
    TaskFilters,
    TaskResponse,
    TaskListResponse,
    AssignResponse,
    TaskSummaryResponse,
    SectionMetrics,
    TeamLeadMetrics,
    TeamLeadSummaryResponse,
    AssignmentRunResponse,
    SweepRunResponse,
    CronJobLogResponse,
)
from storepulse.escalation.application.services import (
    TaskAssignmentService,
    SLASweepService,
    TaskResolutionService,
    TaskQueryService,
    EscalationJobRunner,
    IReviewRepository,
    IResponsibilityDirectory,
    ITaskRepository,
    ICronJobLogRepository,
    IUnitOfWork,
    ISLAPolicyProvider,
)

__all__ = [
    # DTOs
    "ResolveTaskRequest",
    "TaskFilters",
    "TaskResponse",
    "TaskListResponse",
    "AssignResponse",
    "TaskSummaryResponse",
    "SectionMetrics",
    "TeamLeadMetrics",
    "TeamLeadSummaryResponse",
    "AssignmentRunResponse",
    "SweepRunResponse",
    "CronJobLogResponse",
    # Services
    "TaskAssignmentService",
    "SLASweepService",
    "TaskResolutionService",
    "TaskQueryService",
    "EscalationJobRunner",
    # Repository Interfaces
    "IReviewRepository",
    "IResponsibilityDirectory",
    "ITaskRepository",
    "ICronJobLogRepository",
    "IUnitOfWork",
    "ISLAPolicyProvider",
]
