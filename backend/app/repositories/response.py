"""Response repository - one answer row per (assignment, template question)."""

from typing import List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.session import AssessmentResponse
from app.repositories.base import BaseRepository


class ResponseRepository(BaseRepository[AssessmentResponse]):
    """Repository for response operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentResponse)

    async def get_for_pair(self, assignment_id: int, template_question_id: int) -> Optional[AssessmentResponse]:
        result = await self.db.execute(
            select(AssessmentResponse).where(
                and_(
                    AssessmentResponse.assignment_id == assignment_id,
                    AssessmentResponse.template_question_id == template_question_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def count_for_assignments(self, assignment_ids: List[int]) -> int:
        if not assignment_ids:
            return 0
        result = await self.db.execute(
            select(func.count(AssessmentResponse.id)).where(
                AssessmentResponse.assignment_id.in_(assignment_ids)
            )
        )
        return result.scalar_one()

    async def list_for_assignment(self, assignment_id: int) -> List[AssessmentResponse]:
        result = await self.db.execute(
            select(AssessmentResponse)
            .where(AssessmentResponse.assignment_id == assignment_id)
            .order_by(AssessmentResponse.id)
        )
        return list(result.scalars().all())

    async def list_filtered(
        self,
        session_id: int,
        assignment_ids: Optional[List[int]] = None,
        template_question_ids: Optional[List[int]] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[AssessmentResponse], int]:
        query = select(AssessmentResponse).where(AssessmentResponse.session_id == session_id)
        if assignment_ids is not None:
            query = query.where(AssessmentResponse.assignment_id.in_(assignment_ids))
        if template_question_ids is not None:
            query = query.where(AssessmentResponse.template_question_id.in_(template_question_ids))
        query = query.order_by(AssessmentResponse.id.desc())
        return await self.paginate(query, page, page_size)
