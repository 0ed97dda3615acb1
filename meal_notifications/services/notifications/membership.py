from typing import Set
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meal_notifications.db.models import Family, FamilyMember
from meal_notifications.utils.errors import NotFoundError

from .base import MembershipResolver


class FamilyMembershipResolver(MembershipResolver):
    """Resolves membership at call time, so fan-out sees the current family."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def resolve_family_members(self, family_id: uuid.UUID) -> Set[uuid.UUID]:
        family = await self.db.scalar(select(Family.id).where(Family.id == family_id))
        if family is None:
            raise NotFoundError(f"Family not found: {family_id}", "FAMILY_NOT_FOUND")

        result = await self.db.execute(
            select(FamilyMember.user_id).where(FamilyMember.family_id == family_id)
        )
        return set(result.scalars().all())
