from datetime import datetime
from typing import Dict, Iterable, Optional
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from meal_notifications.db.models import (
    Notification,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
)
from meal_notifications.utils.datetime_utils import naive_utc_now, to_naive_utc
from meal_notifications.utils.logging import get_logger

from .base import NotificationStore, ScheduleStore
from .repository import NotificationRepository

logger = get_logger()


class NotificationWriter:
    """Creates per-user notification rows and drives schedule status transitions.

    All writes go through the stores and are flushed, never committed: the
    caller's transaction decides whether they persist.
    """

    def __init__(self, notifications: NotificationStore, schedules: ScheduleStore):
        self.notifications = notifications
        self.schedules = schedules

    @classmethod
    def for_session(cls, db_session: AsyncSession) -> "NotificationWriter":
        repository = NotificationRepository(db_session)
        return cls(notifications=repository, schedules=repository)

    async def create_for_users(
        self,
        users: Iterable[uuid.UUID],
        family_id: Optional[uuid.UUID],
        notification_type: int,
        ref_id: Optional[uuid.UUID],
    ) -> Dict[str, int]:
        """
        Insert one notification per recipient.

        Duplicate ids collapse to one row, and recipients already notified for
        the same (family, type, ref) are left alone, so a retried fan-out never
        doubles rows. An empty recipient set is a no-op.

        Returns:
            {"created": number of rows inserted}
        """
        user_ids = set(users)
        if not user_ids:
            return {"created": 0}

        notification_type = NotificationType(notification_type)

        already_notified = await self.notifications.existing_recipients(
            family_id, notification_type.value, ref_id
        )
        rows = [
            Notification(
                user_id=user_id,
                family_id=family_id,
                type=notification_type.value,
                ref_id=ref_id,
                is_read=False,
            )
            for user_id in sorted(user_ids - already_notified)
        ]

        created = await self.notifications.insert_notifications(rows)
        return {"created": created}

    async def mark_scheduled_done(self, schedule_id: uuid.UUID) -> bool:
        """PENDING -> DONE. A schedule that is already DONE or CANCELED is left as is."""
        applied = await self.schedules.update_schedule_status(
            schedule_id, ScheduleStatus.PENDING, ScheduleStatus.DONE
        )
        if not applied:
            logger.debug(
                "Schedule not pending, mark done is a no-op",
                schedule_id=str(schedule_id),
            )
        return applied

    async def schedule(
        self,
        family_id: uuid.UUID,
        notification_type: int,
        ref_id: uuid.UUID,
        due_at: datetime,
    ) -> ScheduledNotification:
        """Create a PENDING schedule that fans out to the family once due."""
        notification_type = NotificationType(notification_type)
        schedule = ScheduledNotification(
            family_id=family_id,
            type=notification_type.value,
            ref_id=ref_id,
            due_at=to_naive_utc(due_at),
            status=ScheduleStatus.PENDING,
        )
        return await self.schedules.insert_schedule(schedule)

    async def cancel_schedule(self, schedule_id: uuid.UUID) -> bool:
        return await self.schedules.update_schedule_status(
            schedule_id, ScheduleStatus.PENDING, ScheduleStatus.CANCELED
        )

    async def mark_as_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        return await self.notifications.mark_read(
            notification_id, user_id, naive_utc_now()
        )
