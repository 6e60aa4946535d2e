"""Session repository."""

from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.session import AssessmentAssignment, AssessmentSession
from app.repositories.base import BaseRepository


class SessionRepository(BaseRepository[AssessmentSession]):
    """Repository for assessment session operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentSession)

    async def get_with_template(self, id: int) -> Optional[AssessmentSession]:
        result = await self.db.execute(
            select(AssessmentSession)
            .where(and_(AssessmentSession.id == id, AssessmentSession.deleted_at.is_(None)))
            .options(selectinload(AssessmentSession.template))
        )
        return result.scalar_one_or_none()

    async def organization_id_for(self, id: int) -> Optional[int]:
        result = await self.db.execute(
            select(AssessmentSession.organization_id).where(AssessmentSession.id == id)
        )
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        organization_id: Optional[int] = None,
        template_id: Optional[int] = None,
        state: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[AssessmentSession], int]:
        query = select(AssessmentSession).where(AssessmentSession.deleted_at.is_(None))
        if organization_id is not None:
            query = query.where(AssessmentSession.organization_id == organization_id)
        if template_id is not None:
            query = query.where(AssessmentSession.template_id == template_id)
        if state:
            query = query.where(AssessmentSession.state == state)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(AssessmentSession.name.ilike(pattern), AssessmentSession.description.ilike(pattern))
            )
        query = query.order_by(AssessmentSession.start_at.desc(), AssessmentSession.id.desc())
        return await self.paginate(query, page, page_size)

    async def list_for_respondent(
        self,
        user_id: int,
        organization_id: Optional[int] = None,
        state: Optional[str] = None,
    ) -> List[Tuple[AssessmentSession, object, str]]:
        """Rows of (session, assigned_at, perspective) for every live assignment of the user."""
        query = (
            select(AssessmentSession, AssessmentAssignment.created_at, AssessmentAssignment.perspective)
            .join(AssessmentAssignment, AssessmentAssignment.session_id == AssessmentSession.id)
            .where(
                and_(
                    AssessmentAssignment.respondent_user_id == user_id,
                    AssessmentAssignment.deleted_at.is_(None),
                    AssessmentSession.deleted_at.is_(None),
                )
            )
            .order_by(AssessmentSession.start_at.desc(), AssessmentSession.id.desc())
        )
        if organization_id is not None:
            query = query.where(AssessmentSession.organization_id == organization_id)
        if state:
            query = query.where(AssessmentSession.state == state)
        result = await self.db.execute(query)
        return [tuple(row) for row in result.all()]

