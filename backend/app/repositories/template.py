"""Template graph repositories - templates, sections and template questions."""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.question_bank import OptionSet, Question
from app.models.template import AssessmentTemplate, TemplateOrgLink, TemplateQuestion, TemplateSection
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def question_with_options():
    """Loader options resolving a question's inline options and option set."""
    return (
        selectinload(Question.options),
        selectinload(Question.option_set).selectinload(OptionSet.options),
    )


class TemplateRepository(BaseRepository[AssessmentTemplate]):
    """Repository for template operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentTemplate)

    async def get_by_slug(self, slug: str) -> Optional[AssessmentTemplate]:
        result = await self.db.execute(
            select(AssessmentTemplate).where(AssessmentTemplate.slug == slug)
        )
        return result.scalar_one_or_none()

    async def get_org_link(self, template_id: int, organization_id: int) -> Optional[TemplateOrgLink]:
        result = await self.db.execute(
            select(TemplateOrgLink).where(
                and_(
                    TemplateOrgLink.template_id == template_id,
                    TemplateOrgLink.organization_id == organization_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def upsert_org_link(self, template_id: int, organization_id: int, access_level: str) -> TemplateOrgLink:
        link = await self.get_org_link(template_id, organization_id)
        if link:
            link.access_level = access_level
            await self.db.flush()
            return link
        link = TemplateOrgLink(
            template_id=template_id, organization_id=organization_id, access_level=access_level
        )
        self.db.add(link)
        await self.db.flush()
        return link

    async def list_for_organization(
        self,
        organization_id: int,
        search: Optional[str] = None,
        state: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[AssessmentTemplate], int]:
        """Templates created by or linked to the organization."""
        linked = select(TemplateOrgLink.template_id).where(
            TemplateOrgLink.organization_id == organization_id
        )
        query = select(AssessmentTemplate).where(
            and_(
                AssessmentTemplate.deleted_at.is_(None),
                or_(
                    AssessmentTemplate.created_by_organization_id == organization_id,
                    AssessmentTemplate.id.in_(linked),
                ),
            )
        )
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(AssessmentTemplate.name.ilike(pattern), AssessmentTemplate.slug.ilike(pattern))
            )
        if state:
            query = query.where(AssessmentTemplate.state == state)
        query = query.order_by(AssessmentTemplate.created_at.desc(), AssessmentTemplate.id.desc())
        return await self.paginate(query, page, page_size)

    async def get_ordered_sections(self, template_id: int) -> List[TemplateSection]:
        """Live sections with their live template questions, both in order."""
        result = await self.db.execute(
            select(TemplateSection)
            .where(
                and_(
                    TemplateSection.template_id == template_id,
                    TemplateSection.deleted_at.is_(None),
                )
            )
            .order_by(TemplateSection.order, TemplateSection.id)
            .options(
                selectinload(TemplateSection.questions)
                .selectinload(TemplateQuestion.question)
                .options(*question_with_options())
            )
            .execution_options(populate_existing=True)
        )
        sections = list(result.scalars().all())
        for section in sections:
            # soft-deleted links and questions stay out of the projection
            section.live_questions = sorted(
                (q for q in section.questions if q.deleted_at is None and q.question.deleted_at is None),
                key=lambda q: (q.order, q.id),
            )
        return sections


class SectionRepository(BaseRepository[TemplateSection]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, TemplateSection)

    async def list_live(self, template_id: int) -> List[TemplateSection]:
        result = await self.db.execute(
            select(TemplateSection)
            .where(
                and_(
                    TemplateSection.template_id == template_id,
                    TemplateSection.deleted_at.is_(None),
                )
            )
            .order_by(TemplateSection.order, TemplateSection.id)
        )
        return list(result.scalars().all())

    async def count_live(self, template_id: int) -> int:
        result = await self.db.execute(
            select(func.count(TemplateSection.id)).where(
                and_(
                    TemplateSection.template_id == template_id,
                    TemplateSection.deleted_at.is_(None),
                )
            )
        )
        return result.scalar_one()

    async def template_id_for(self, section_id: int) -> Optional[int]:
        result = await self.db.execute(
            select(TemplateSection.template_id).where(
                and_(TemplateSection.id == section_id, TemplateSection.deleted_at.is_(None))
            )
        )
        return result.scalar_one_or_none()

    async def compact_order(self, template_id: int) -> int:
        """Re-index live sections 0..n-1; returns the number of rows moved."""
        sections = await self.list_live(template_id)
        return _reindex(sections)


class TemplateQuestionRepository(BaseRepository[TemplateQuestion]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, TemplateQuestion)

    async def get_with_context(self, id: int) -> Optional[TemplateQuestion]:
        """Link with its section, template and question (options resolved)."""
        result = await self.db.execute(
            select(TemplateQuestion)
            .where(TemplateQuestion.id == id)
            .options(
                selectinload(TemplateQuestion.section).selectinload(TemplateSection.template),
                selectinload(TemplateQuestion.question).options(*question_with_options()),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_live(self, section_id: int, with_questions: bool = False) -> List[TemplateQuestion]:
        query = (
            select(TemplateQuestion)
            .where(
                and_(
                    TemplateQuestion.section_id == section_id,
                    TemplateQuestion.deleted_at.is_(None),
                )
            )
            .order_by(TemplateQuestion.order, TemplateQuestion.id)
        )
        if with_questions:
            query = query.options(
                selectinload(TemplateQuestion.question).options(*question_with_options())
            )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_live(self, section_id: int) -> int:
        result = await self.db.execute(
            select(func.count(TemplateQuestion.id)).where(
                and_(
                    TemplateQuestion.section_id == section_id,
                    TemplateQuestion.deleted_at.is_(None),
                )
            )
        )
        return result.scalar_one()

    async def template_id_for(self, template_question_id: int) -> Optional[int]:
        result = await self.db.execute(
            select(TemplateSection.template_id)
            .join(TemplateQuestion, TemplateQuestion.section_id == TemplateSection.id)
            .where(TemplateQuestion.id == template_question_id)
        )
        return result.scalar_one_or_none()

    async def delete_for_section(self, section_id: int) -> int:
        result = await self.db.execute(
            delete(TemplateQuestion).where(TemplateQuestion.section_id == section_id)
        )
        return result.rowcount or 0

    async def live_perspective_sets(self, template_id: int) -> List[List[str]]:
        """Perspective lists of every live link in the template.

        A link is live when the link, its section, its template and its
        question are all not soft-deleted.
        """
        result = await self.db.execute(
            select(TemplateQuestion.perspectives)
            .join(TemplateSection, TemplateQuestion.section_id == TemplateSection.id)
            .join(AssessmentTemplate, TemplateSection.template_id == AssessmentTemplate.id)
            .join(Question, TemplateQuestion.question_id == Question.id)
            .where(
                and_(
                    TemplateSection.template_id == template_id,
                    TemplateQuestion.deleted_at.is_(None),
                    TemplateSection.deleted_at.is_(None),
                    AssessmentTemplate.deleted_at.is_(None),
                    Question.deleted_at.is_(None),
                )
            )
        )
        return [list(row or []) for row in result.scalars().all()]

    async def count_for_perspectives(self, template_id: int, perspectives: List[str]) -> Dict[str, int]:
        """Applicable live question count per perspective.

        Links without a perspective restriction count for every perspective.
        """
        perspective_sets = await self.live_perspective_sets(template_id)
        counts = {}
        for perspective in perspectives:
            counts[perspective] = sum(
                1 for allowed in perspective_sets if not allowed or perspective in allowed
            )
        return counts

    async def ids_for_question(self, question_id: int) -> List[int]:
        result = await self.db.execute(
            select(TemplateQuestion.id).where(TemplateQuestion.question_id == question_id)
        )
        return list(result.scalars().all())

    async def compact_order(self, section_id: int) -> int:
        """Re-index live links of a section 0..n-1; returns the number of rows moved."""
        links = await self.list_live(section_id)
        return _reindex(links)


def _reindex(rows) -> int:
    moved = 0
    for index, row in enumerate(rows):
        if row.order != index:
            row.order = index
            moved += 1
    return moved
