from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence, Set
import uuid

from sqlalchemy import ColumnElement

from meal_notifications.db.models import (
    Notification,
    ScheduledNotification,
    ScheduleStatus,
)


class ScheduleStore(ABC):
    """Durable store of scheduled notifications."""

    @abstractmethod
    async def select_due_schedules(
        self, now: datetime, limit: int
    ) -> Sequence[ScheduledNotification]:
        """PENDING schedules with due_at <= now, oldest due first, at most `limit`."""

    @abstractmethod
    async def get_schedule_for_update(
        self, schedule_id: uuid.UUID
    ) -> Optional[ScheduledNotification]:
        """Re-read one schedule, locking the row for the current transaction."""

    @abstractmethod
    async def insert_schedule(
        self, schedule: ScheduledNotification
    ) -> ScheduledNotification:
        pass

    @abstractmethod
    async def update_schedule_status(
        self,
        schedule_id: uuid.UUID,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
    ) -> bool:
        """Compare-and-set the status. False if the row was not in `from_status`."""

    @abstractmethod
    async def delete_schedules_where(self, predicate: ColumnElement[bool]) -> int:
        pass


class NotificationStore(ABC):
    """Per-user notification rows."""

    @abstractmethod
    async def insert_notifications(self, rows: Sequence[Notification]) -> int:
        pass

    @abstractmethod
    async def existing_recipients(
        self,
        family_id: Optional[uuid.UUID],
        notification_type: int,
        ref_id: Optional[uuid.UUID],
    ) -> Set[uuid.UUID]:
        """User ids that already hold a row for this (family, type, ref)."""

    @abstractmethod
    async def mark_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID, read_at: datetime
    ) -> bool:
        pass

    @abstractmethod
    async def delete_notifications_where(self, predicate: ColumnElement[bool]) -> int:
        pass


class MembershipResolver(ABC):
    """Maps a family to its current member user ids."""

    @abstractmethod
    async def resolve_family_members(self, family_id: uuid.UUID) -> Set[uuid.UUID]:
        pass
