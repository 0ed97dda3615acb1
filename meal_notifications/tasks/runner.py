import asyncio
import enum
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meal_notifications.config.settings import settings
from meal_notifications.schemas.notification_schemas import (
    CleanupRunResult,
    SchedulerRunResult,
)
from meal_notifications.tasks.cron.notification_cleanup import run_cleanup_job
from meal_notifications.tasks.cron.notification_scheduler import (
    run_windowed_scheduler_job,
)
from meal_notifications.utils.datetime_utils import utc_now
from meal_notifications.utils.logging import get_logger

logger = get_logger().bind(component="notification_runner")

SCHEDULER_JOB_ID = "notification-scheduler"
CLEANUP_JOB_ID = "notification-cleanup"
COLD_START_JOB_ID = "notification-scheduler-cold-start"


class RunnerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class NotificationSchedulerRunner:
    """
    Process-local clock for the windowed scheduler and cleanup jobs.

    Both jobs run as coroutines on the running event loop. Only the scheduler
    job is guarded against overlap: a tick that fires while a previous one is
    still RUNNING is skipped, never queued.

    stop() only prevents future ticks; a batch already in flight runs to
    completion. Await wait_idle() after stop() to let it finish before the
    scheduler is shut down and the database pool is closed.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        batch_limit: int = settings.NOTIFICATION_SCHEDULER_BATCH_LIMIT,
        scheduler_cron: str = settings.NOTIFICATION_SCHEDULER_CRON,
        cleanup_cron: str = settings.NOTIFICATION_CLEANUP_CRON,
    ):
        if batch_limit <= 0:
            raise ValueError(f"batch_limit must be positive, got {batch_limit}")

        self.session_factory = session_factory
        self.batch_limit = batch_limit
        self.state = RunnerState.IDLE
        # Set while no tick / no cleanup is in flight
        self._tick_idle = asyncio.Event()
        self._tick_idle.set()
        self._cleanup_idle = asyncio.Event()
        self._cleanup_idle.set()
        self._scheduler_trigger = CronTrigger.from_crontab(
            scheduler_cron, timezone=timezone.utc
        )
        self._cleanup_trigger = CronTrigger.from_crontab(
            cleanup_cron, timezone=timezone.utc
        )
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)

    @property
    def is_running(self) -> bool:
        return self.state is RunnerState.RUNNING

    def start(self) -> None:
        """Register both cadences and fire one catch-up tick right away."""
        self._scheduler.add_job(
            self.tick,
            self._scheduler_trigger,
            id=SCHEDULER_JOB_ID,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.cleanup_tick,
            self._cleanup_trigger,
            id=CLEANUP_JOB_ID,
            coalesce=True,
            replace_existing=True,
        )
        # No trigger: runs once, as soon as the scheduler wakes up
        self._scheduler.add_job(self.tick, id=COLD_START_JOB_ID, replace_existing=True)
        self._scheduler.start()

        logger.info(
            "Notification scheduler runner started",
            batch_limit=self.batch_limit,
            scheduler_cron=str(self._scheduler_trigger),
            cleanup_cron=str(self._cleanup_trigger),
        )

    def stop(self) -> None:
        """
        Prevent future ticks without touching the one in flight.

        The jobs are removed and the scheduler paused rather than shut down:
        shutting down the asyncio executor cancels running job tasks.
        """
        if self._scheduler.running:
            self._scheduler.remove_all_jobs()
            self._scheduler.pause()
        logger.info("Notification scheduler runner stopped", state=self.state.value)

    async def wait_idle(self) -> None:
        """Wait for in-flight ticks to finish, then shut the scheduler down."""
        if not self._tick_idle.is_set() or not self._cleanup_idle.is_set():
            logger.info("Waiting for in-flight notification jobs to finish")
        await self._tick_idle.wait()
        await self._cleanup_idle.wait()

        if self._scheduler.running:
            # Nothing left to cancel, job tasks have completed
            self._scheduler.shutdown(wait=False)

    async def tick(self, now: Optional[datetime] = None) -> Optional[SchedulerRunResult]:
        """
        Run one windowed scheduler batch unless one is already in flight.

        Returns the batch result, or None when the tick was skipped or the
        batch itself raised.
        """
        if self.state is RunnerState.RUNNING:
            logger.warning("Previous scheduler run still in progress, skipping tick")
            return None

        self.state = RunnerState.RUNNING
        self._tick_idle.clear()
        started_at = utc_now()
        logger.info("Scheduler tick start", started_at=started_at.isoformat())

        try:
            return await run_windowed_scheduler_job(
                self.batch_limit,
                now=now or started_at,
                session_factory=self.session_factory,
            )
        except Exception as e:
            logger.opt(exception=e).error("Scheduler tick failed", error=str(e))
            return None
        finally:
            ended_at = utc_now()
            self.state = RunnerState.IDLE
            self._tick_idle.set()
            logger.info(
                "Scheduler tick end",
                started_at=started_at.isoformat(),
                ended_at=ended_at.isoformat(),
                duration_ms=int((ended_at - started_at).total_seconds() * 1000),
            )

    async def cleanup_tick(
        self, now: Optional[datetime] = None
    ) -> Optional[CleanupRunResult]:
        self._cleanup_idle.clear()
        try:
            return await run_cleanup_job(now=now, session_factory=self.session_factory)
        except Exception as e:
            logger.opt(exception=e).error("Cleanup tick failed", error=str(e))
            return None
        finally:
            self._cleanup_idle.set()
