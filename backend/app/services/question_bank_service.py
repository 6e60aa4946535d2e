"""Content library services: question banks, option sets and questions."""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import atomic
from app.core.exceptions import NotFoundError, ValidationError
from app.models.enums import AccessLevel, QuestionType
from app.models.question_bank import OptionSet, OptionSetOption, Question, QuestionBank
from app.repositories.question_bank import OptionSetRepository, QuestionBankRepository, QuestionRepository
from app.schemas.question_bank import (
    OptionInput,
    OptionSetCreateRequest,
    OptionSetUpdateRequest,
    OptionUpdateRequest,
    QuestionBankCreateRequest,
    QuestionBankUpdateRequest,
    QuestionCreateRequest,
    QuestionUpdateRequest,
)
from app.services.access_service import ResourceAccessService

logger = logging.getLogger(__name__)


def _page_args(page: int, page_size: Optional[int]) -> Tuple[int, int]:
    page = page if page and page > 0 else 1
    return page, min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)


def _changes(data, nullable=(), exclude=None) -> Dict[str, Any]:
    """Fields the caller set; None only survives for nullable columns."""
    values = data.model_dump(exclude_unset=True, exclude=exclude)
    return {k: v for k, v in values.items() if v is not None or k in nullable}


def _option_dicts(options: Optional[List[OptionInput]]) -> List[Dict[str, Any]]:
    return [o.model_dump() for o in options or []]


class QuestionBankService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = QuestionBankRepository(db)
        self.access = ResourceAccessService(db)

    async def create(self, data: QuestionBankCreateRequest, org_id: int) -> QuestionBank:
        bank = await self.repository.create(
            name=data.name, description=data.description, created_by_organization_id=org_id
        )
        await self.repository.upsert_org_link(bank.id, org_id, AccessLevel.ADMIN.value)
        logger.info(f"[QUESTION_BANK_SERVICE] Created bank {bank.id} for organization {org_id}")
        return bank

    async def list(
        self, org_id: int, search: Optional[str] = None, page: int = 1, page_size: Optional[int] = None
    ) -> Tuple[List[QuestionBank], int, int, int]:
        page, page_size = _page_args(page, page_size)
        items, total = await self.repository.list_for_organization(org_id, search, page, page_size)
        return items, total, page, page_size

    async def get(self, bank_id: int, org_id: int) -> QuestionBank:
        await self.access.check_bank(bank_id, org_id, AccessLevel.USE)
        return await self.repository.get_active(bank_id)

    async def update(self, bank_id: int, data: QuestionBankUpdateRequest, org_id: int) -> QuestionBank:
        await self.access.check_bank(bank_id, org_id, AccessLevel.EDIT)
        changes = _changes(data, nullable=("description",))
        return await self.repository.update(bank_id, **changes)

    async def soft_delete(self, bank_id: int, org_id: int) -> QuestionBank:
        await self.access.check_bank(bank_id, org_id, AccessLevel.ADMIN)
        return await self.repository.soft_delete(bank_id)

    async def count_questions(self, bank_id: int, org_id: int) -> int:
        await self.access.check_bank(bank_id, org_id, AccessLevel.USE)
        return await self.repository.count_questions(bank_id)

    async def link_organization(self, bank_id: int, target_org_id: int, access_level: str, org_id: int):
        await self.access.check_bank(bank_id, org_id, AccessLevel.ADMIN)
        return await self.repository.upsert_org_link(bank_id, target_org_id, AccessLevel(access_level).value)


class OptionSetService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = OptionSetRepository(db)
        self.access = ResourceAccessService(db)

    async def _write_options(self, option_set_id: Optional[int], work):
        """Run ``work`` in a savepoint; a repeated option value rolls all of it back."""
        try:
            async with atomic(self.db):
                return await work()
        except IntegrityError as e:
            logger.info(f"[OPTION_SET_SERVICE] Option value collision in option set {option_set_id}: {e.orig}")
            raise ValidationError(
                "Option values must be unique within an option set",
                field="options",
                details={"option_set_id": option_set_id},
            )

    async def create(self, data: OptionSetCreateRequest, org_id: int) -> OptionSet:
        async def work():
            created = await self.repository.create(
                name=data.name,
                code=data.code,
                description=data.description,
                meta=data.meta or {},
                created_by_organization_id=org_id,
            )
            await self.repository.upsert_org_link(created.id, org_id, AccessLevel.ADMIN.value)
            if data.options:
                await self.repository.replace_options(created.id, _option_dicts(data.options))
            return created

        option_set = await self._write_options(None, work)
        logger.info(f"[OPTION_SET_SERVICE] Created option set {option_set.id} with {len(data.options)} options")
        return await self.repository.get_with_options(option_set.id)

    async def list(
        self, org_id: int, search: Optional[str] = None, page: int = 1, page_size: Optional[int] = None
    ) -> Tuple[List[OptionSet], int, int, int]:
        page, page_size = _page_args(page, page_size)
        items, total = await self.repository.list_for_organization(org_id, search, page, page_size)
        return items, total, page, page_size

    async def get(self, option_set_id: int, org_id: int) -> OptionSet:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.USE)
        return await self.repository.get_with_options(option_set_id)

    async def update(self, option_set_id: int, data: OptionSetUpdateRequest, org_id: int) -> OptionSet:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.EDIT)
        changes = _changes(data, nullable=("code", "description"), exclude={"options"})

        async def work():
            await self.repository.update(option_set_id, **changes)
            if data.options is not None:
                await self.repository.replace_options(option_set_id, _option_dicts(data.options))

        await self._write_options(option_set_id, work)
        return await self.repository.get_with_options(option_set_id)

    async def soft_delete(self, option_set_id: int, org_id: int) -> OptionSet:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.ADMIN)
        return await self.repository.soft_delete(option_set_id)

    async def link_organization(self, option_set_id: int, target_org_id: int, access_level: str, org_id: int):
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.ADMIN)
        return await self.repository.upsert_org_link(
            option_set_id, target_org_id, AccessLevel(access_level).value
        )

    async def list_options(self, option_set_id: int, org_id: int) -> List[OptionSetOption]:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.USE)
        return await self.repository.list_options(option_set_id)

    async def bulk_replace_options(
        self, option_set_id: int, options: List[OptionInput], org_id: int
    ) -> List[OptionSetOption]:
        """Replace all options in one transaction."""
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.EDIT)

        async def work():
            await self.repository.replace_options(option_set_id, _option_dicts(options))

        await self._write_options(option_set_id, work)
        return await self.repository.list_options(option_set_id)

    async def _get_option(self, option_set_id: int, option_id: int) -> OptionSetOption:
        option = await self.repository.get_option(option_set_id, option_id)
        if not option:
            raise NotFoundError("OptionSetOption not found")
        return option

    async def update_option(
        self, option_set_id: int, option_id: int, data: OptionUpdateRequest, org_id: int
    ) -> OptionSetOption:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.EDIT)
        option = await self._get_option(option_set_id, option_id)

        async def work():
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(option, field, value)
            await self.db.flush()
            return option

        return await self._write_options(option_set_id, work)

    async def remove_option(self, option_set_id: int, option_id: int, org_id: int) -> int:
        await self.access.check_option_set(option_set_id, org_id, AccessLevel.EDIT)
        option = await self._get_option(option_set_id, option_id)
        await self.db.delete(option)
        await self.db.flush()
        return option_id


class QuestionService:
    """Questions live inside a bank and inherit its access level."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = QuestionRepository(db)
        self.bank_repository = QuestionBankRepository(db)
        self.option_set_repository = OptionSetRepository(db)
        self.access = ResourceAccessService(db)

    async def _get_live(self, question_id: int) -> Question:
        question = await self.repository.get_with_options(question_id)
        if not question:
            raise NotFoundError("Question not found")
        return question

    async def _validate_shape(
        self,
        type: str,
        option_set_id: Optional[int],
        options: Optional[List[OptionInput]],
        min_scale: Optional[int],
        max_scale: Optional[int],
    ) -> None:
        if option_set_id and options:
            raise ValidationError("Provide either optionSetId or options, not both", field="options")
        if option_set_id and not await self.option_set_repository.get_active(option_set_id):
            raise ValidationError("Invalid optionSetId", field="option_set_id")
        if type == QuestionType.SCALE.value and min_scale is not None and max_scale is not None:
            if min_scale > max_scale:
                raise ValidationError("min_scale must not exceed max_scale", field="min_scale")

    async def create(self, data: QuestionCreateRequest, org_id: int) -> Question:
        if not await self.bank_repository.get_active(data.bank_id):
            raise NotFoundError("Question bank not found")
        await self.access.check_bank(data.bank_id, org_id, AccessLevel.EDIT)
        await self._validate_shape(data.type, data.option_set_id, data.options, data.min_scale, data.max_scale)

        async with atomic(self.db):
            question = await self.repository.create(
                bank_id=data.bank_id,
                code=data.code,
                text=data.text,
                type=data.type,
                option_set_id=data.option_set_id,
                min_scale=data.min_scale,
                max_scale=data.max_scale,
                meta=data.meta or {},
            )
            if data.options:
                await self.repository.replace_options(question.id, _option_dicts(data.options))
        logger.info(f"[QUESTION_SERVICE] Created {data.type} question {question.id} in bank {data.bank_id}")
        return await self._get_live(question.id)

    async def get(self, question_id: int, org_id: int) -> Question:
        question = await self._get_live(question_id)
        await self.access.check_bank(question.bank_id, org_id, AccessLevel.USE)
        return question

    async def list(
        self,
        bank_id: int,
        org_id: int,
        search: Optional[str] = None,
        type: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Question], int, int, int]:
        await self.access.check_bank(bank_id, org_id, AccessLevel.USE)
        page, page_size = _page_args(page, page_size)
        items, total = await self.repository.list_by_bank(bank_id, search, type, page, page_size)
        return items, total, page, page_size

    async def update(self, question_id: int, data: QuestionUpdateRequest, org_id: int) -> Question:
        existing = await self._get_live(question_id)
        await self.access.check_bank(existing.bank_id, org_id, AccessLevel.EDIT)

        changes = _changes(
            data, nullable=("code", "option_set_id", "min_scale", "max_scale"), exclude={"options"}
        )
        option_set_id = changes.get("option_set_id", existing.option_set_id)
        await self._validate_shape(
            changes.get("type") or existing.type,
            option_set_id,
            data.options,
            changes.get("min_scale", existing.min_scale),
            changes.get("max_scale", existing.max_scale),
        )

        async with atomic(self.db):
            await self.repository.update(question_id, **changes)
            if data.options is not None:
                await self.repository.replace_options(question_id, _option_dicts(data.options))
        return await self._get_live(question_id)

    async def soft_delete(self, question_id: int, org_id: int) -> Question:
        existing = await self._get_live(question_id)
        await self.access.check_bank(existing.bank_id, org_id, AccessLevel.EDIT)
        return await self.repository.soft_delete(question_id)
