"""
Escalation Infrastructure Repositories
=======================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Every method returns domain dataclasses, never
ORM instances, so callers can keep using results after a rollback.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storepulse.config import POSITIVE_RATING_THRESHOLD, TaskStatus, UserRole
from storepulse.core import RepositoryException
from storepulse.escalation.application import (
    ICronJobLogRepository,
    IResponsibilityDirectory,
    IReviewRepository,
    ITaskRepository,
    IUnitOfWork,
    TaskFilters,
)
from storepulse.escalation.domain import (
    CronJobLog,
    ResponsibleUser,
    Review,
    SLAClock,
    Task,
)
from storepulse.escalation.infrastructure.models import (
    CronJobLogModel,
    ReviewModel,
    SectionModel,
    TaskModel,
    UserModel,
    UserSectionModel,
)


def _optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    return SLAClock.as_utc(value) if value else None


def _review_from_model(model: ReviewModel) -> Review:
    return Review(
        id=model.id,
        shop_id=model.shop_id,
        section_id=model.section_id,
        rating=model.rating,
        comment=model.comment,
        created_at=SLAClock.as_utc(model.created_at),
        is_processed=model.is_processed,
        customer_name=model.customer_name,
        customer_phone=model.customer_phone,
        customer_email=model.customer_email,
    )


def _user_from_model(model: UserModel) -> ResponsibleUser:
    return ResponsibleUser(id=model.id, name=model.name, email=model.email)


def _task_from_model(model: TaskModel) -> Task:
    return Task(
        id=model.id,
        review_id=model.review_id,
        shop_id=model.shop_id,
        section_id=model.section_id,
        assigned_to_id=model.assigned_to_id,
        status=model.status,
        sla_status=model.sla_status,
        assigned_at=SLAClock.as_utc(model.assigned_at),
        resolved_at=_optional_utc(model.resolved_at),
        remarks=model.remarks,
    )


def _log_from_model(model: CronJobLogModel) -> CronJobLog:
    return CronJobLog(
        id=model.id,
        job_name=model.job_name,
        status=model.status,
        message=model.message,
        reviews_processed=model.reviews_processed,
        tasks_created=model.tasks_created,
        tasks_inspected=model.tasks_inspected,
        tasks_updated=model.tasks_updated,
        started_at=SLAClock.as_utc(model.started_at),
        completed_at=SLAClock.as_utc(model.completed_at),
    )


class SQLAlchemyReviewRepository(IReviewRepository):
    """SQLAlchemy implementation of review repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, review_id: str) -> Optional[Review]:
        stmt = (
            select(ReviewModel)
            .where(ReviewModel.id == review_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _review_from_model(model) if model else None

    async def list_unprocessed_negative(self) -> List[Review]:
        stmt = (
            select(ReviewModel)
            .where(
                ReviewModel.rating < POSITIVE_RATING_THRESHOLD,
                ReviewModel.is_processed.is_(False)
            )
            .order_by(ReviewModel.created_at.asc(), ReviewModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [_review_from_model(m) for m in result.scalars().all()]

    async def mark_processed(self, review_id: str) -> None:
        stmt = (
            update(ReviewModel)
            .where(ReviewModel.id == review_id)
            .values(is_processed=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise RepositoryException(f"Review {review_id} not found")


class SQLAlchemyResponsibilityDirectory(IResponsibilityDirectory):
    """
    Read access to users, sections and responsibility entries.

    When several active team leads share a section, the earliest
    responsibility entry wins.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_responsible_user(
        self,
        shop_id: str,
        section_id: str
    ) -> Optional[ResponsibleUser]:
        stmt = (
            select(UserModel)
            .join(UserSectionModel, UserSectionModel.user_id == UserModel.id)
            .where(
                UserSectionModel.shop_id == shop_id,
                UserSectionModel.section_id == section_id,
                UserModel.role == UserRole.TL,
                UserModel.is_active.is_(True)
            )
            .order_by(UserSectionModel.created_at.asc(), UserSectionModel.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return _user_from_model(user)

    async def get_user(self, user_id: str) -> Optional[ResponsibleUser]:
        user = await self._session.get(UserModel, user_id)
        return _user_from_model(user) if user else None

    async def get_users(self, user_ids: List[str]) -> List[ResponsibleUser]:
        if not user_ids:
            return []
        stmt = (
            select(UserModel)
            .where(UserModel.id.in_(user_ids))
            .order_by(UserModel.name.asc(), UserModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [_user_from_model(u) for u in result.scalars().all()]

    async def section_names(self, section_ids: List[str]) -> Dict[str, str]:
        if not section_ids:
            return {}
        stmt = select(SectionModel.id, SectionModel.name).where(SectionModel.id.in_(section_ids))
        result = await self._session.execute(stmt)
        return {row.id: row.name for row in result}

    async def sections_of(self, user_id: str, shop_id: Optional[str] = None) -> List[str]:
        stmt = (
            select(SectionModel.name)
            .join(UserSectionModel, UserSectionModel.section_id == SectionModel.id)
            .where(UserSectionModel.user_id == user_id)
            .order_by(SectionModel.name.asc())
            .distinct()
        )
        if shop_id:
            stmt = stmt.where(UserSectionModel.shop_id == shop_id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyTaskRepository(ITaskRepository):
    """
    SQLAlchemy implementation of task repository.

    State-changing writes are conditional on the task still being open.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, task_id: str) -> Optional[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.id == task_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _task_from_model(model) if model else None

    async def get_by_review_id(self, review_id: str) -> Optional[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.review_id == review_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _task_from_model(model) if model else None

    async def create(self, task: Task) -> Task:
        model = TaskModel(
            review_id=task.review_id,
            shop_id=task.shop_id,
            section_id=task.section_id,
            assigned_to_id=task.assigned_to_id,
            status=task.status,
            sla_status=task.sla_status,
            assigned_at=task.assigned_at,
            resolved_at=task.resolved_at,
            remarks=task.remarks,
        )
        if task.id:
            model.id = task.id

        self._session.add(model)
        await self._session.flush()

        return _task_from_model(model)

    async def list_by_status(self, status: str) -> List[Task]:
        stmt = (
            select(TaskModel)
            .where(TaskModel.status == status)
            .order_by(TaskModel.assigned_at.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_task_from_model(m) for m in result.scalars().all()]

    async def update_sla_status(self, task_id: str, sla_status: str) -> bool:
        stmt = (
            update(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.status == TaskStatus.PENDING)
            .values(sla_status=sla_status)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def resolve(
        self,
        task_id: str,
        status: str,
        sla_status: str,
        resolved_at: datetime,
        remarks: str
    ) -> bool:
        stmt = (
            update(TaskModel)
            .where(TaskModel.id == task_id, TaskModel.status == TaskStatus.PENDING)
            .values(
                status=status,
                sla_status=sla_status,
                resolved_at=resolved_at,
                remarks=remarks
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    def _apply_filters(self, stmt, filters: TaskFilters):
        conditions = []
        if filters.status:
            conditions.append(TaskModel.status == filters.status)
        if filters.sla_status:
            conditions.append(TaskModel.sla_status == filters.sla_status)
        if filters.shop_id:
            conditions.append(TaskModel.shop_id == filters.shop_id)
        if filters.section_id:
            conditions.append(TaskModel.section_id == filters.section_id)
        if filters.assigned_to_id:
            conditions.append(TaskModel.assigned_to_id == filters.assigned_to_id)
        if filters.start_date:
            conditions.append(TaskModel.assigned_at >= filters.start_date)
        if filters.end_date:
            conditions.append(TaskModel.assigned_at <= filters.end_date)

        if conditions:
            stmt = stmt.where(*conditions)
        return stmt

    async def list(
        self,
        filters: TaskFilters,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Task]:
        stmt = self._apply_filters(select(TaskModel), filters)

        # Newest assignment first
        stmt = stmt.order_by(TaskModel.assigned_at.desc(), TaskModel.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        result = await self._session.execute(stmt.execution_options(populate_existing=True))
        return [_task_from_model(m) for m in result.scalars().all()]

    async def count(self, filters: TaskFilters) -> int:
        stmt = self._apply_filters(select(func.count(TaskModel.id)), filters)
        result = await self._session.execute(stmt)
        return result.scalar_one()


class SQLAlchemyCronJobLogRepository(ICronJobLogRepository):
    """Append-only cron log storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, log: CronJobLog) -> CronJobLog:
        model = CronJobLogModel(
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
        self._session.add(model)
        await self._session.flush()

        log.id = model.id
        return log

    async def list_recent(self, limit: int = 20) -> List[CronJobLog]:
        stmt = (
            select(CronJobLogModel)
            .order_by(CronJobLogModel.started_at.desc(), CronJobLogModel.completed_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_log_from_model(m) for m in result.scalars().all()]


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over one AsyncSession.

    Repositories are plain attributes so callers may swap one out.
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self.reviews = SQLAlchemyReviewRepository(session)
        self.directory = SQLAlchemyResponsibilityDirectory(session)
        self.tasks = SQLAlchemyTaskRepository(session)
        self.cron_logs = SQLAlchemyCronJobLogRepository(session)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
