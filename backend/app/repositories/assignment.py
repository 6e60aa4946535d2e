"""Assignment repository - the (session, respondent, subject, perspective) matrix."""

from typing import Iterable, List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.session import AssessmentAssignment
from app.repositories.base import BaseRepository


class AssignmentRepository(BaseRepository[AssessmentAssignment]):
    """Repository for assignment operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentAssignment)

    def _tuple_filter(self, session_id: int, respondent_user_id: int, subject_user_id: int, perspective: str):
        return and_(
            AssessmentAssignment.session_id == session_id,
            AssessmentAssignment.respondent_user_id == respondent_user_id,
            AssessmentAssignment.subject_user_id == subject_user_id,
            AssessmentAssignment.perspective == perspective,
        )

    async def get_by_tuple(
        self,
        session_id: int,
        respondent_user_id: int,
        subject_user_id: int,
        perspective: str,
    ) -> Optional[AssessmentAssignment]:
        """Row holding the tuple, live or soft-deleted."""
        result = await self.db.execute(
            select(AssessmentAssignment).where(
                self._tuple_filter(session_id, respondent_user_id, subject_user_id, perspective)
            )
        )
        return result.scalar_one_or_none()

    async def list_for_session(self, session_id: int) -> List[AssessmentAssignment]:
        result = await self.db.execute(
            select(AssessmentAssignment)
            .where(
                and_(
                    AssessmentAssignment.session_id == session_id,
                    AssessmentAssignment.deleted_at.is_(None),
                )
            )
            .options(
                selectinload(AssessmentAssignment.respondent),
                selectinload(AssessmentAssignment.subject),
            )
            .order_by(AssessmentAssignment.id)
        )
        return list(result.scalars().all())

    async def list_for_respondent(
        self,
        session_id: int,
        respondent_user_id: int,
        perspective: Optional[str] = None,
        subject_user_id: Optional[int] = None,
    ) -> List[AssessmentAssignment]:
        query = select(AssessmentAssignment).where(
            and_(
                AssessmentAssignment.session_id == session_id,
                AssessmentAssignment.respondent_user_id == respondent_user_id,
                AssessmentAssignment.deleted_at.is_(None),
            )
        )
        if perspective:
            query = query.where(AssessmentAssignment.perspective == perspective)
        if subject_user_id is not None:
            query = query.where(AssessmentAssignment.subject_user_id == subject_user_id)
        result = await self.db.execute(query.order_by(AssessmentAssignment.id))
        return list(result.scalars().all())

    async def self_rows_for(
        self, session_id: int, perspective: str, user_ids: Iterable[int]
    ) -> List[AssessmentAssignment]:
        """Rows (live or soft-deleted) where respondent and subject are the same user."""
        result = await self.db.execute(
            select(AssessmentAssignment).where(
                and_(
                    AssessmentAssignment.session_id == session_id,
                    AssessmentAssignment.perspective == perspective,
                    AssessmentAssignment.respondent_user_id.in_(list(user_ids)),
                    AssessmentAssignment.subject_user_id == AssessmentAssignment.respondent_user_id,
                )
            )
        )
        return list(result.scalars().all())

    async def rows_for_subjects(
        self, session_id: int, respondent_user_id: int, perspective: str, subject_ids: Iterable[int]
    ) -> List[AssessmentAssignment]:
        """Rows (live or soft-deleted) for one respondent across ``subject_ids``."""
        result = await self.db.execute(
            select(AssessmentAssignment).where(
                and_(
                    AssessmentAssignment.session_id == session_id,
                    AssessmentAssignment.respondent_user_id == respondent_user_id,
                    AssessmentAssignment.perspective == perspective,
                    AssessmentAssignment.subject_user_id.in_(list(subject_ids)),
                )
            )
        )
        return list(result.scalars().all())

    async def ids_for_filters(
        self,
        session_id: int,
        user_id: Optional[int] = None,
        perspective: Optional[str] = None,
    ) -> List[int]:
        query = select(AssessmentAssignment.id).where(AssessmentAssignment.session_id == session_id)
        if user_id is not None:
            query = query.where(AssessmentAssignment.respondent_user_id == user_id)
        if perspective:
            query = query.where(AssessmentAssignment.perspective == perspective)
        result = await self.db.execute(query)
        return list(result.scalars().all())
