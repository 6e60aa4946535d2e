"""Content library repositories - question banks, option sets and questions."""

from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.question_bank import (
    OptionSet,
    OptionSetOption,
    OptionSetOrgLink,
    Question,
    QuestionBank,
    QuestionBankOrgLink,
    QuestionOption,
)
from app.repositories.base import BaseRepository
from app.repositories.template import question_with_options


class _LinkedResourceRepository:
    """Shared org-link queries for resources owned by one org and shareable."""

    link_model = None
    link_fk = ""

    async def get_org_link(self, resource_id: int, organization_id: int):
        link_fk = getattr(self.link_model, self.link_fk)
        result = await self.db.execute(
            select(self.link_model).where(
                and_(link_fk == resource_id, self.link_model.organization_id == organization_id)
            )
        )
        return result.scalar_one_or_none()

    async def upsert_org_link(self, resource_id: int, organization_id: int, access_level: str):
        link = await self.get_org_link(resource_id, organization_id)
        if link:
            link.access_level = access_level
        else:
            link = self.link_model(
                **{self.link_fk: resource_id, "organization_id": organization_id, "access_level": access_level}
            )
            self.db.add(link)
        await self.db.flush()
        return link

    def _visible_to(self, organization_id: int):
        linked = select(getattr(self.link_model, self.link_fk)).where(
            self.link_model.organization_id == organization_id
        )
        return and_(
            self.model.deleted_at.is_(None),
            or_(
                self.model.created_by_organization_id == organization_id,
                self.model.id.in_(linked),
            ),
        )


class QuestionBankRepository(_LinkedResourceRepository, BaseRepository[QuestionBank]):
    link_model = QuestionBankOrgLink
    link_fk = "bank_id"

    def __init__(self, db: AsyncSession):
        super().__init__(db, QuestionBank)

    async def list_for_organization(
        self, organization_id: int, search: Optional[str] = None, page: int = 1, page_size: int = 20
    ) -> Tuple[List[QuestionBank], int]:
        query = select(QuestionBank).where(self._visible_to(organization_id))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(QuestionBank.name.ilike(pattern), QuestionBank.description.ilike(pattern))
            )
        query = query.order_by(QuestionBank.created_at.desc(), QuestionBank.id.desc())
        return await self.paginate(query, page, page_size)

    async def count_questions(self, bank_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Question.id)).where(
                and_(Question.bank_id == bank_id, Question.deleted_at.is_(None))
            )
        )
        return result.scalar_one()


class OptionSetRepository(_LinkedResourceRepository, BaseRepository[OptionSet]):
    link_model = OptionSetOrgLink
    link_fk = "option_set_id"

    def __init__(self, db: AsyncSession):
        super().__init__(db, OptionSet)

    async def get_with_options(self, id: int) -> Optional[OptionSet]:
        result = await self.db.execute(
            select(OptionSet)
            .where(and_(OptionSet.id == id, OptionSet.deleted_at.is_(None)))
            .options(selectinload(OptionSet.options))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_organization(
        self, organization_id: int, search: Optional[str] = None, page: int = 1, page_size: int = 20
    ) -> Tuple[List[OptionSet], int]:
        query = (
            select(OptionSet)
            .where(self._visible_to(organization_id))
            .options(selectinload(OptionSet.options))
        )
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(OptionSet.name.ilike(pattern), OptionSet.code.ilike(pattern)))
        query = query.order_by(OptionSet.created_at.desc(), OptionSet.id.desc())
        return await self.paginate(query, page, page_size)

    async def list_options(self, option_set_id: int) -> List[OptionSetOption]:
        result = await self.db.execute(
            select(OptionSetOption)
            .where(OptionSetOption.option_set_id == option_set_id)
            .order_by(OptionSetOption.order, OptionSetOption.id)
        )
        return list(result.scalars().all())

    async def get_option(self, option_set_id: int, option_id: int) -> Optional[OptionSetOption]:
        result = await self.db.execute(
            select(OptionSetOption).where(
                and_(OptionSetOption.id == option_id, OptionSetOption.option_set_id == option_set_id)
            )
        )
        return result.scalar_one_or_none()

    async def replace_options(self, option_set_id: int, options: List[dict]) -> List[OptionSetOption]:
        await self.db.execute(
            delete(OptionSetOption).where(OptionSetOption.option_set_id == option_set_id)
        )
        created = []
        for index, data in enumerate(options):
            row = OptionSetOption(
                option_set_id=option_set_id,
                value=data["value"],
                label=data["label"],
                order=data.get("order") if data.get("order") is not None else index,
                meta=data.get("meta") or {},
            )
            self.db.add(row)
            created.append(row)
        await self.db.flush()
        return created


class QuestionRepository(BaseRepository[Question]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, Question)

    async def get_with_options(self, id: int) -> Optional[Question]:
        result = await self.db.execute(
            select(Question)
            .where(and_(Question.id == id, Question.deleted_at.is_(None)))
            .options(*question_with_options())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_bank(
        self,
        bank_id: int,
        search: Optional[str] = None,
        type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Question], int]:
        query = (
            select(Question)
            .where(and_(Question.bank_id == bank_id, Question.deleted_at.is_(None)))
            .options(*question_with_options())
        )
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Question.text.ilike(pattern), Question.code.ilike(pattern)))
        if type:
            query = query.where(Question.type == type)
        query = query.order_by(Question.id)
        return await self.paginate(query, page, page_size)

    async def replace_options(self, question_id: int, options: List[dict]) -> None:
        await self.db.execute(delete(QuestionOption).where(QuestionOption.question_id == question_id))
        for index, data in enumerate(options):
            self.db.add(
                QuestionOption(
                    question_id=question_id,
                    value=data["value"],
                    label=data["label"],
                    order=data.get("order") if data.get("order") is not None else index,
                )
            )
        await self.db.flush()
