import os

# Point the application engine at SQLite before any app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator, Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from meal_notifications.db.models import (
    Base,
    Family,
    FamilyMember,
    FamilyRole,
    Notification,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
    User,
)


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed processing clock, naive UTC like the stored columns
NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Short-lived session for assertions. Jobs open their own sessions."""
    async with session_factory() as session:
        yield session


# Test data factories
async def _create_family(
    session_factory: async_sessionmaker[AsyncSession], member_count: int
) -> Family:
    async with session_factory() as session:
        family = Family(id=uuid.uuid4(), name="The Hungry Family")
        session.add(family)
        for index in range(member_count):
            user = User(id=uuid.uuid4(), display_name=f"Member {index + 1}")
            session.add(user)
            session.add(
                FamilyMember(
                    family_id=family.id,
                    user_id=user.id,
                    role=FamilyRole.ADMIN if index == 0 else FamilyRole.MEMBER,
                )
            )
        await session.commit()
        return family


@pytest_asyncio.fixture
async def sample_family(session_factory) -> Family:
    """A family with two members."""
    return await _create_family(session_factory, member_count=2)


@pytest_asyncio.fixture
async def empty_family(session_factory) -> Family:
    """A family whose members have all left."""
    return await _create_family(session_factory, member_count=0)


@pytest.fixture
def create_schedule(
    session_factory,
) -> Callable[..., Awaitable[ScheduledNotification]]:
    async def _create(
        family_id: uuid.UUID,
        due_at: datetime,
        status: ScheduleStatus = ScheduleStatus.PENDING,
        created_at: Optional[datetime] = None,
        notification_type: int = NotificationType.REMINDER,
    ) -> ScheduledNotification:
        async with session_factory() as session:
            schedule = ScheduledNotification(
                id=uuid.uuid4(),
                family_id=family_id,
                type=int(notification_type),
                ref_id=uuid.uuid4(),
                due_at=due_at,
                status=status,
                created_at=created_at or due_at - timedelta(days=1),
            )
            session.add(schedule)
            await session.commit()
            return schedule

    return _create


@pytest.fixture
def create_notification(session_factory) -> Callable[..., Awaitable[Notification]]:
    async def _create(
        user_id: uuid.UUID,
        family_id: Optional[uuid.UUID],
        created_at: datetime,
        is_read: bool = False,
    ) -> Notification:
        async with session_factory() as session:
            notification = Notification(
                id=uuid.uuid4(),
                user_id=user_id,
                family_id=family_id,
                type=int(NotificationType.MEAL_FINALIZED),
                ref_id=uuid.uuid4(),
                is_read=is_read,
                read_at=created_at + timedelta(hours=1) if is_read else None,
                created_at=created_at,
            )
            session.add(notification)
            await session.commit()
            return notification

    return _create


async def get_schedule(
    session_factory: async_sessionmaker[AsyncSession], schedule_id: uuid.UUID
) -> Optional[ScheduledNotification]:
    async with session_factory() as session:
        return await session.get(ScheduledNotification, schedule_id)


async def get_notifications_for_ref(
    session_factory: async_sessionmaker[AsyncSession], ref_id: uuid.UUID
) -> List[Notification]:
    async with session_factory() as session:
        result = await session.execute(
            select(Notification).where(Notification.ref_id == ref_id)
        )
        return list(result.scalars().all())


async def get_member_ids(
    session_factory: async_sessionmaker[AsyncSession], family_id: uuid.UUID
) -> List[uuid.UUID]:
    async with session_factory() as session:
        result = await session.execute(
            select(FamilyMember.user_id).where(FamilyMember.family_id == family_id)
        )
        return list(result.scalars().all())
