from datetime import datetime
from typing import Optional, Sequence, Set
import uuid

from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meal_notifications.db.models import (
    Notification,
    ScheduledNotification,
    ScheduleStatus,
)

from .base import NotificationStore, ScheduleStore


class NotificationRepository(ScheduleStore, NotificationStore):
    """SQLAlchemy-backed schedule and notification storage bound to one session.

    The repository never commits; the caller owns the transaction.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def select_due_schedules(
        self, now: datetime, limit: int
    ) -> Sequence[ScheduledNotification]:
        result = await self.db.execute(
            select(ScheduledNotification)
            .where(
                ScheduledNotification.status == ScheduleStatus.PENDING,
                ScheduledNotification.due_at <= now,
            )
            .order_by(
                ScheduledNotification.due_at.asc(),
                ScheduledNotification.created_at.asc(),
            )
            .limit(limit)
        )
        return result.scalars().all()

    async def get_schedule_for_update(
        self, schedule_id: uuid.UUID
    ) -> Optional[ScheduledNotification]:
        result = await self.db.execute(
            select(ScheduledNotification)
            .where(ScheduledNotification.id == schedule_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def insert_schedule(
        self, schedule: ScheduledNotification
    ) -> ScheduledNotification:
        self.db.add(schedule)
        await self.db.flush()
        return schedule

    async def update_schedule_status(
        self,
        schedule_id: uuid.UUID,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
    ) -> bool:
        result = await self.db.execute(
            update(ScheduledNotification)
            .where(
                ScheduledNotification.id == schedule_id,
                ScheduledNotification.status == from_status,
            )
            .values(status=to_status)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    async def delete_schedules_where(self, predicate: ColumnElement[bool]) -> int:
        result = await self.db.execute(
            delete(ScheduledNotification)
            .where(predicate)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def insert_notifications(self, rows: Sequence[Notification]) -> int:
        if not rows:
            return 0
        self.db.add_all(rows)
        await self.db.flush()
        return len(rows)

    async def existing_recipients(
        self,
        family_id: Optional[uuid.UUID],
        notification_type: int,
        ref_id: Optional[uuid.UUID],
    ) -> Set[uuid.UUID]:
        stmt = select(Notification.user_id).where(
            Notification.type == notification_type
        )
        stmt = stmt.where(
            Notification.family_id.is_(None)
            if family_id is None
            else Notification.family_id == family_id
        )
        stmt = stmt.where(
            Notification.ref_id.is_(None)
            if ref_id is None
            else Notification.ref_id == ref_id
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def mark_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID, read_at: datetime
    ) -> bool:
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_notifications_where(self, predicate: ColumnElement[bool]) -> int:
        result = await self.db.execute(
            delete(Notification)
            .where(predicate)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
