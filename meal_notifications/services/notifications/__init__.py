from .base import MembershipResolver, NotificationStore, ScheduleStore
from .membership import FamilyMembershipResolver
from .notification_writer import NotificationWriter
from .repository import NotificationRepository

__all__ = [
    "MembershipResolver",
    "NotificationStore",
    "ScheduleStore",
    "FamilyMembershipResolver",
    "NotificationWriter",
    "NotificationRepository",
]
