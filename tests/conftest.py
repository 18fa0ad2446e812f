"""
Shared fixtures: a fresh in-memory database per test and small seeding helpers.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from teameval.database import Base
from teameval.models import analytics_cache, question, rating, score_snapshot, team, user  # noqa: F401
from teameval.models.question import Question
from teameval.models.user import ManagerAssignment, Role, User
from teameval.schemas.period import Period
from teameval.services import results


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture(autouse=True)
def clear_computation_locks():
    results._computing.clear()
    yield
    results._computing.clear()


@pytest.fixture
def period() -> Period:
    return Period(year=2025, month=3, day=14, hour=9)


async def make_users(db: AsyncSession, count: int, role: Role = Role.MEMBER, prefix: str = "user") -> list[User]:
    users = [
        User(username=f"{prefix}{i}", email=f"{prefix}{i}@example.com", role=role)
        for i in range(count)
    ]
    db.add_all(users)
    await db.commit()
    return users


async def make_question(db: AsyncSession, period: Period, text: str = "How did it go?") -> Question:
    q = Question(text=text, year=period.year, month=period.month, day=period.day, hour=period.hour)
    db.add(q)
    await db.commit()
    return q


async def assign_manager(db: AsyncSession, user_id: int, manager_id: int) -> None:
    db.add(ManagerAssignment(user_id=user_id, manager_id=manager_id))
    await db.commit()
