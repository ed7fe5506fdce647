"""Shared fixtures: in-memory database, seed data and a controllable clock."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from storepulse.config import UserRole
from storepulse.infrastructure.database import Base, build_session_maker
from storepulse.escalation.infrastructure import (
    ReviewModel,
    SectionModel,
    ShopModel,
    SQLAlchemyUnitOfWork,
    UserModel,
    UserSectionModel,
)

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
async def engine():
    """Create test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    """Create test session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def seeded(session: AsyncSession):
    """
    Shop S1 with section "Men Casual" owned by team lead U1.

    Also seeds an inactive team lead and an admin on section "Kids", which
    therefore has no eligible owner.
    """
    session.add_all([
        ShopModel(id="S1", name="Downtown", slug="downtown"),
        SectionModel(id="SEC-MC", name="Men Casual"),
        SectionModel(id="SEC-KIDS", name="Kids"),
        UserModel(id="U1", name="Asha", email="asha@example.com", role=UserRole.TL),
        UserModel(id="U2", name="Ravi", email="ravi@example.com", role=UserRole.TL, is_active=False),
        UserModel(id="U3", name="Meera", email="meera@example.com", role=UserRole.ADMIN),
    ])
    await session.flush()
    session.add_all([
        UserSectionModel(user_id="U1", section_id="SEC-MC", shop_id="S1"),
        UserSectionModel(user_id="U2", section_id="SEC-KIDS", shop_id="S1"),
        UserSectionModel(user_id="U3", section_id="SEC-KIDS", shop_id="S1"),
    ])
    await session.commit()
    return session


@pytest.fixture
def uow(session: AsyncSession) -> SQLAlchemyUnitOfWork:
    return SQLAlchemyUnitOfWork(session)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def add_review(seeded: AsyncSession):
    """Insert a review and return its id."""

    async def _add(
        review_id: str,
        rating: int = 2,
        section_id: str = "SEC-MC",
        created_at: datetime = T0 - timedelta(hours=12),
        is_processed: bool = False,
    ) -> str:
        seeded.add(ReviewModel(
            id=review_id,
            shop_id="S1",
            section_id=section_id,
            rating=rating,
            comment="Rude staff" if rating < 4 else "Great service",
            created_at=created_at,
            is_processed=is_processed,
        ))
        await seeded.commit()
        return review_id

    return _add
