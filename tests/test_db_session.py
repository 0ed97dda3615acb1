from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import NullPool

from meal_notifications.db.session import engine, task_session_factory


class TestTaskSessionFactory:
    """Per-invocation engines for Celery task bodies."""

    @pytest.mark.asyncio
    async def test_yields_unpooled_engine_separate_from_app_engine(self):
        async with task_session_factory() as session_factory:
            task_engine = session_factory.kw["bind"]

            assert task_engine is not engine
            assert isinstance(task_engine.pool, NullPool)

            async with session_factory() as session:
                assert await session.scalar(text("SELECT 1")) == 1

    @pytest.mark.asyncio
    async def test_engine_disposed_on_exit_even_after_error(self):
        disposed = []
        original_dispose = AsyncEngine.dispose

        async def tracking_dispose(self, close=True):
            disposed.append(self)
            await original_dispose(self, close)

        with patch.object(AsyncEngine, "dispose", tracking_dispose):
            with pytest.raises(RuntimeError):
                async with task_session_factory() as session_factory:
                    task_engine = session_factory.kw["bind"]
                    raise RuntimeError("job failed")

        assert disposed == [task_engine]
