import asyncio
import sys

from .models import Base
from .session import engine

from meal_notifications.utils.logging import get_logger

logger = get_logger()


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created all tables.")


async def drop_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Dropped all tables.")


async def reset_db():
    logger.info("Resetting database...")
    await drop_tables()
    await create_tables()
    logger.info("Database reset complete.")


if __name__ == "__main__":
    # python -m meal_notifications.db.db [create|reset]
    command = sys.argv[1] if len(sys.argv) > 1 else "create"
    asyncio.run(reset_db() if command == "reset" else create_tables())
