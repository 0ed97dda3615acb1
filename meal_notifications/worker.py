"""
Long-lived notification scheduler process.

Hosts NotificationSchedulerRunner on an asyncio loop until SIGINT/SIGTERM.
Shutdown is cooperative: timers stop first, a batch already in flight runs to
completion, and only then is the database pool closed.

Usage:
    python -m meal_notifications.worker
"""

import asyncio
import signal
import sys

from meal_notifications.db.session import close_database
from meal_notifications.tasks.runner import NotificationSchedulerRunner
from meal_notifications.utils.logging import get_logger

logger = get_logger()


async def serve() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(signame: str) -> None:
        logger.info(f"Received {signame}, initiating shutdown...")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, request_shutdown, signum.name)

    runner = NotificationSchedulerRunner()
    runner.start()

    try:
        await stop_event.wait()
    finally:
        runner.stop()
        await runner.wait_idle()
        await close_database()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        logger.info("Notification scheduler shutdown complete")


def main() -> int:
    logger.info("=" * 60)
    logger.info("Starting notification scheduler worker")
    logger.info("=" * 60)

    try:
        asyncio.run(serve())
    except Exception as e:
        logger.opt(exception=e).error(f"Notification scheduler worker crashed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
