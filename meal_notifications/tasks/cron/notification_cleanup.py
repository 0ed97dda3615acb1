import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meal_notifications.celery import celery
from meal_notifications.db.models import (
    Notification,
    ScheduledNotification,
    ScheduleStatus,
)
from meal_notifications.db.session import AsyncSessionLocal, task_session_factory
from meal_notifications.schemas.notification_schemas import CleanupRunResult
from meal_notifications.services.notifications import NotificationRepository
from meal_notifications.utils.datetime_utils import days_ago, resolve_job_now
from meal_notifications.utils.logging import get_logger

JOB_NAME = "notification_cleanup"

# Retention policy, in days since created_at
READ_NOTIFICATION_RETENTION_DAYS = 20
ANY_NOTIFICATION_RETENTION_DAYS = 60
DONE_SCHEDULE_RETENTION_DAYS = 14
CANCELED_SCHEDULE_RETENTION_DAYS = 1


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def notification_cleanup_task(self, request_id: str):
    """
    Daily retention cleanup for notifications and finished schedules.

    Args:
        request_id: The request ID for tracking purposes (provided by Celery Beat configuration)
    """
    logger = get_logger().bind(request_id=request_id, job=JOB_NAME)
    try:
        result = asyncio.run(_async_notification_cleanup())
    except Exception as e:
        logger.error("Notification cleanup task exception", error=str(e))
        raise

    return {
        "success": True,
        **result.model_dump(),
        "request_id": request_id,
    }


async def _async_notification_cleanup() -> CleanupRunResult:
    async with task_session_factory() as session_factory:
        return await run_cleanup_job(session_factory=session_factory)


async def run_cleanup_job(
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> CleanupRunResult:
    """
    Delete rows past their retention age.

    Notifications go once read and older than 20 days, or older than 60 days
    regardless of read state. DONE schedules go after 14 days, CANCELED ones
    after 1 day. PENDING schedules are never touched.

    Both deletes share one transaction: any failure rolls back the whole pass
    and propagates to the caller.
    """
    now = resolve_job_now(now)
    session_factory = session_factory or AsyncSessionLocal
    logger = get_logger().bind(job=JOB_NAME)

    read_cutoff = days_ago(READ_NOTIFICATION_RETENTION_DAYS, now)
    any_cutoff = days_ago(ANY_NOTIFICATION_RETENTION_DAYS, now)
    done_cutoff = days_ago(DONE_SCHEDULE_RETENTION_DAYS, now)
    canceled_cutoff = days_ago(CANCELED_SCHEDULE_RETENTION_DAYS, now)

    async with session_factory() as db_session, db_session.begin():
        repository = NotificationRepository(db_session)

        deleted_notifications = await repository.delete_notifications_where(
            or_(
                and_(
                    Notification.is_read.is_(True),
                    Notification.created_at < read_cutoff,
                ),
                Notification.created_at < any_cutoff,
            )
        )

        deleted_schedules = await repository.delete_schedules_where(
            or_(
                and_(
                    ScheduledNotification.status == ScheduleStatus.DONE,
                    ScheduledNotification.created_at < done_cutoff,
                ),
                and_(
                    ScheduledNotification.status == ScheduleStatus.CANCELED,
                    ScheduledNotification.created_at < canceled_cutoff,
                ),
            )
        )

    logger.info(
        "Notification cleanup complete",
        deleted_notifications=deleted_notifications,
        deleted_schedules=deleted_schedules,
        now=now.isoformat(),
    )

    return CleanupRunResult(
        deleted_notifications=deleted_notifications,
        deleted_schedules=deleted_schedules,
    )
