from typing import List, Optional
from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    String,
    Boolean,
    SmallInteger,
    ForeignKey,
    Enum,
    Index,
    UniqueConstraint,
    DateTime,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from meal_notifications.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


# Enums
class NotificationType(enum.IntEnum):
    MEAL_PROPOSAL = 1
    MEAL_FINALIZED = 2
    MEMBER_JOINED = 3
    REMINDER = 4
    COOK_ASSIGNED = 5
    WELCOME_FAMILY = 6


class ScheduleStatus(enum.Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    CANCELED = "CANCELED"


class FamilyRole(enum.Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class CreatedAtMixin:
    """Creation timestamp, naive UTC. Retention is computed from this column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )


# Models
class User(Base, CreatedAtMixin):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    memberships: Mapped[List["FamilyMember"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class Family(Base, CreatedAtMixin):
    __tablename__ = "families"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    members: Mapped[List["FamilyMember"]] = relationship(
        back_populates="family", cascade="all, delete-orphan"
    )


class FamilyMember(Base, CreatedAtMixin):
    __tablename__ = "family_members"

    family_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("families.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[FamilyRole] = mapped_column(
        Enum(FamilyRole, native_enum=False, length=20),
        default=FamilyRole.MEMBER,
        nullable=False,
    )

    family: Mapped["Family"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="memberships")

    __table_args__ = (Index("idx_family_members_user_id", "user_id"),)


class ScheduledNotification(Base, CreatedAtMixin):
    __tablename__ = "scheduled_notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )
    # NotificationType code, validated when the schedule is fanned out
    type: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    ref_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus, native_enum=False, length=20),
        default=ScheduleStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_sched_notif_status_due_at", "status", "due_at"),
        Index("idx_sched_notif_status_created_at", "status", "created_at"),
    )


class Notification(Base, CreatedAtMixin):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    family_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("families.id", ondelete="CASCADE")
    )
    type: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    # Subject entity (meal, proposal, member...), carried through unchanged
    ref_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "family_id",
            "type",
            "ref_id",
            name="uq_notif_user_family_type_ref",
        ),
        Index("idx_notif_user_family_created", "user_id", "family_id", "created_at"),
        Index("idx_notif_created_at", "created_at"),
    )
