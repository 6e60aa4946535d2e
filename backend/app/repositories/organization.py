"""Organization, team, user and membership repositories."""

from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.organization import Organization, OrganizationMembership, Team, User
from app.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for organization data operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Organization)

    async def exists_active(self, id: int) -> bool:
        return await self.get_active(id) is not None


class TeamRepository(BaseRepository[Team]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, Team)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_active_many(self, ids: List[int]) -> List[User]:
        """Get all non-deleted users among ``ids``."""
        if not ids:
            return []
        result = await self.db.execute(
            select(User).where(and_(User.id.in_(ids), User.deleted_at.is_(None)))
        )
        return list(result.scalars().all())


class MembershipRepository(BaseRepository[OrganizationMembership]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, OrganizationMembership)

    async def get_for_user(
        self, user_id: int, organization_id: int
    ) -> Optional[OrganizationMembership]:
        result = await self.db.execute(
            select(OrganizationMembership).where(
                and_(
                    OrganizationMembership.user_id == user_id,
                    OrganizationMembership.organization_id == organization_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def ensure(self, user_id: int, organization_id: int, roles: List[str]) -> OrganizationMembership:
        """Create the membership if missing; an existing one is left untouched."""
        existing = await self.get_for_user(user_id, organization_id)
        if existing:
            return existing
        return await self.create(user_id=user_id, organization_id=organization_id, roles=list(roles))
