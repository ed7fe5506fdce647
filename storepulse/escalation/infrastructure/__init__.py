"""
Escalation Infrastructure Layer
================================

Infrastructure implementations for the escalation module:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and unit of work
- External: SLA policy file watcher, job scheduler
"""

from storepulse.escalation.infrastructure.models import (
    ShopModel,
    SectionModel,
    UserModel,
    UserSectionModel,
    ReviewModel,
    TaskModel,
    CronJobLogModel,
)
from storepulse.escalation.infrastructure.repositories import (
    SQLAlchemyReviewRepository,
    SQLAlchemyResponsibilityDirectory,
    SQLAlchemyTaskRepository,
    SQLAlchemyCronJobLogRepository,
    SQLAlchemyUnitOfWork,
)

__all__ = [
    "ShopModel",
    "SectionModel",
    "UserModel",
    "UserSectionModel",
    "ReviewModel",
    "TaskModel",
    "CronJobLogModel",
    "SQLAlchemyReviewRepository",
    "SQLAlchemyResponsibilityDirectory",
    "SQLAlchemyTaskRepository",
    "SQLAlchemyCronJobLogRepository",
    "SQLAlchemyUnitOfWork",
]
