import asyncio
from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meal_notifications.celery import celery
from meal_notifications.db.models import NotificationType, ScheduleStatus
from meal_notifications.db.session import AsyncSessionLocal, task_session_factory
from meal_notifications.schemas.notification_schemas import SchedulerRunResult
from meal_notifications.services.notifications import (
    FamilyMembershipResolver,
    NotificationRepository,
    NotificationWriter,
)
from meal_notifications.utils.datetime_utils import resolve_job_now
from meal_notifications.utils.errors import BusinessLogicError
from meal_notifications.utils.logging import get_logger

JOB_NAME = "notification_scheduler"


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def notification_scheduler_task(self, request_id: str, limit: int = 200):
    """
    Hourly task that fans out due scheduled notifications to family members.

    Celery beat alternative to the in-process runner; both call
    run_windowed_scheduler_job.

    Args:
        request_id: The request ID for tracking purposes (provided by Celery Beat configuration)
        limit: Maximum number of schedules to process in this batch
    """
    logger = get_logger().bind(request_id=request_id, job=JOB_NAME)
    try:
        result = asyncio.run(_async_notification_scheduler(limit))
    except Exception as e:
        logger.error(
            "Notification scheduler task exception", error=str(e), limit=limit
        )
        raise

    return {
        "success": True,
        **result.model_dump(),
        "request_id": request_id,
    }


async def _async_notification_scheduler(limit: int) -> SchedulerRunResult:
    async with task_session_factory() as session_factory:
        return await run_windowed_scheduler_job(limit, session_factory=session_factory)


def _validate_limit(limit: object) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValueError(f"limit must be an integer, got {type(limit).__name__}")
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    return limit


async def run_windowed_scheduler_job(
    limit: int,
    now: Optional[datetime] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> SchedulerRunResult:
    """
    Process PENDING schedules with due_at <= now, oldest first, at most `limit`.

    Each schedule is resolved, fanned out and marked DONE inside its own
    transaction. A failing schedule is rolled back, logged and left PENDING
    so the next window picks it up again; it never aborts the batch.

    Raises:
        ValueError: limit is not a positive int or now is not a datetime.
    """
    limit = _validate_limit(limit)
    now = resolve_job_now(now)
    session_factory = session_factory or AsyncSessionLocal
    logger = get_logger().bind(job=JOB_NAME)

    async with session_factory() as db_session:
        due_schedules = await NotificationRepository(db_session).select_due_schedules(
            now, limit
        )

    if not due_schedules:
        logger.info("No due scheduled notifications", now=now.isoformat())
        return SchedulerRunResult(due=0, processed=0, failed=0, skipped=0)

    processed = 0
    failed = 0
    skipped = 0

    for schedule in due_schedules:
        # Captured up front, the ORM instance is detached and may be stale
        schedule_id = schedule.id
        family_id = schedule.family_id
        schedule_type = schedule.type

        try:
            created = await _process_schedule(session_factory, schedule_id, now)
        except Exception as e:
            failed += 1
            logger.opt(exception=e).error(
                "Failed to process scheduled notification (will retry)",
                schedule_id=str(schedule_id),
                family_id=str(family_id),
                type=schedule_type,
                error=str(e),
            )
            continue

        if created is None:
            skipped += 1
            logger.info(
                "Scheduled notification no longer pending, skipped",
                schedule_id=str(schedule_id),
            )
            continue

        processed += 1
        logger.info(
            "Processed scheduled notification",
            schedule_id=str(schedule_id),
            family_id=str(family_id),
            type=schedule_type,
            created=created,
        )

    logger.info(
        "Notification scheduler batch completed",
        due=len(due_schedules),
        processed=processed,
        failed=failed,
        skipped=skipped,
        now=now.isoformat(),
    )

    return SchedulerRunResult(
        due=len(due_schedules), processed=processed, failed=failed, skipped=skipped
    )


async def _process_schedule(
    session_factory: async_sessionmaker[AsyncSession],
    schedule_id: uuid.UUID,
    now: datetime,
) -> Optional[int]:
    """
    One atomic unit of work: resolve members, fan out, mark DONE.

    Returns the number of notifications created, or None when the schedule
    was canceled or completed since it was selected.
    """
    async with session_factory() as db_session, db_session.begin():
        repository = NotificationRepository(db_session)
        writer = NotificationWriter(notifications=repository, schedules=repository)
        membership = FamilyMembershipResolver(db_session)

        schedule = await repository.get_schedule_for_update(schedule_id)
        if (
            schedule is None
            or schedule.status is not ScheduleStatus.PENDING
            or schedule.due_at > now
        ):
            return None

        member_ids = await membership.resolve_family_members(schedule.family_id)

        result = await writer.create_for_users(
            member_ids,
            family_id=schedule.family_id,
            notification_type=NotificationType(schedule.type),
            ref_id=schedule.ref_id,
        )

        if not await writer.mark_scheduled_done(schedule.id):
            raise BusinessLogicError(
                f"Scheduled notification {schedule.id} left PENDING concurrently",
                "SCHEDULE_STATE_CONFLICT",
            )

        return result["created"]
