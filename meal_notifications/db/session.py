from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from meal_notifications.config.settings import settings

engine = create_async_engine(
    str(settings.DATABASE_URL),
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=settings.DATABASE_ECHO,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency returning the session factory.

    Jobs open one session per unit of work, so they take the factory rather
    than a single request-scoped session.
    """
    return AsyncSessionLocal


@asynccontextmanager
async def task_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    Session factory scoped to one Celery task invocation.

    Each task body runs under its own asyncio.run() loop, and asyncpg
    connections cannot cross loops, so the task gets an unpooled engine that
    is disposed before the loop closes.
    """
    task_engine = create_async_engine(
        str(settings.DATABASE_URL),
        poolclass=NullPool,
        echo=settings.DATABASE_ECHO,
    )
    try:
        yield async_sessionmaker(
            bind=task_engine, class_=AsyncSession, expire_on_commit=False
        )
    finally:
        await task_engine.dispose()


async def close_database() -> None:
    await engine.dispose()
