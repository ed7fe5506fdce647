"""
Escalation Domain Layer
=======================

Domain layer for the review escalation module.

Contains:
- Entities: Core business objects (Review, Task, CronJobLog, run results)
- Value Objects: Immutable objects and pure rules (SLAClock, SLAPolicy)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from storepulse.escalation.domain.entities import (
    Review,
    ResponsibleUser,
    Task,
    CronJobLog,
    AssignmentRunResult,
    SweepResult,
    SweepRunResult,
)
from storepulse.escalation.domain.value_objects import SLAClock, SLAPolicy, utc_now

__all__ = [
    # Entities
    "Review",
    "ResponsibleUser",
    "Task",
    "CronJobLog",
    "AssignmentRunResult",
    "SweepResult",
    "SweepRunResult",
    # Value Objects & Services
    "SLAClock",
    "SLAPolicy",
    "utc_now",
]
