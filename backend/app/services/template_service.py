"""Template graph services: templates, sections and template-question links."""
import logging
import re
import secrets
import string
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import atomic
from app.core.exceptions import DuplicateSlugError, NotFoundError, ValidationError
from app.models.enums import PERSPECTIVE_VALUES, AccessLevel, Perspective, TemplateState
from app.models.organization import Actor
from app.models.template import AssessmentTemplate, TemplateQuestion, TemplateSection
from app.repositories.question_bank import QuestionRepository
from app.repositories.template import SectionRepository, TemplateQuestionRepository, TemplateRepository
from app.schemas.template import (
    SectionCreateRequest,
    SectionUpdateRequest,
    TemplateCreateRequest,
    TemplateQuestionCreateRequest,
    TemplateQuestionItem,
    TemplateQuestionUpdateRequest,
    TemplateUpdateRequest,
)
from app.services.access_service import ResourceAccessService

logger = logging.getLogger(__name__)

SLUG_UNSAFE = re.compile(r"[^a-z0-9]+")
SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_FALLBACK = "template"


def generate_slug(name: str) -> str:
    """Lowercase hyphenated ASCII slug with a short random suffix."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    base = SLUG_UNSAFE.sub("-", ascii_name.lower()).strip("-")
    base = base[: settings.SLUG_MAX_LENGTH].rstrip("-") or SLUG_FALLBACK
    suffix = "".join(secrets.choice(SLUG_ALPHABET) for _ in range(settings.SLUG_SUFFIX_LENGTH))
    return f"{base}-{suffix}"


def validate_perspectives(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    invalid = [v for v in values if v not in PERSPECTIVE_VALUES]
    if invalid:
        raise ValidationError(
            "Invalid perspectives: " + ",".join(str(v) for v in invalid), field="perspectives"
        )
    return list(values)


class TemplateService:
    """Service for template CRUD with per-organization access levels."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = TemplateRepository(db)
        self.access = ResourceAccessService(db)

    async def _get_accessible(
        self, template_id: int, org_id: int, level: AccessLevel, actor: Optional[Actor]
    ) -> AssessmentTemplate:
        await self.access.check_template(template_id, org_id, level, actor=actor)
        return await self.repository.get_active(template_id)

    async def create(self, data: TemplateCreateRequest, org_id: int) -> AssessmentTemplate:
        slug = data.slug if data.slug else generate_slug(data.name)
        if await self.repository.get_by_slug(slug):
            raise DuplicateSlugError("Slug already exists", details={"slug": slug})

        template = await self.repository.create(
            name=data.name,
            slug=slug,
            description=data.description,
            meta=data.meta or {},
            state=TemplateState.DRAFT.value,
            created_by_organization_id=org_id,
        )
        await self.repository.upsert_org_link(template.id, org_id, AccessLevel.ADMIN.value)
        logger.info(f"[TEMPLATE_SERVICE] Created template {template.id} ({slug}) for organization {org_id}")
        return template

    async def list(
        self,
        org_id: int,
        search: Optional[str] = None,
        state: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[AssessmentTemplate], int, int, int]:
        page = page if page and page > 0 else 1
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        items, total = await self.repository.list_for_organization(
            org_id, search=search, state=state, page=page, page_size=page_size
        )
        return items, total, page, page_size

    async def get(self, template_id: int, org_id: int, actor: Optional[Actor] = None) -> AssessmentTemplate:
        return await self._get_accessible(template_id, org_id, AccessLevel.USE, actor)

    async def get_full(
        self, template_id: int, org_id: int, actor: Optional[Actor] = None
    ) -> Tuple[AssessmentTemplate, List[TemplateSection]]:
        """Template plus its ordered sections, each carrying ``live_questions``."""
        template = await self.get(template_id, org_id, actor)
        sections = await self.repository.get_ordered_sections(template_id)
        return template, sections

    async def update(
        self,
        template_id: int,
        data: TemplateUpdateRequest,
        org_id: int,
        actor: Optional[Actor] = None,
    ) -> AssessmentTemplate:
        existing = await self._get_accessible(template_id, org_id, AccessLevel.EDIT, actor)

        if data.slug and data.slug != existing.slug:
            if await self.repository.get_by_slug(data.slug):
                raise DuplicateSlugError("Slug already exists", details={"slug": data.slug})

        if (
            data.state
            and existing.state != TemplateState.DRAFT.value
            and data.state == TemplateState.DRAFT.value
        ):
            raise ValidationError("Cannot revert to DRAFT", field="state")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "description" in data.model_fields_set:
            changes["description"] = data.description
        template = await self.repository.update(template_id, **changes)
        logger.info(f"[TEMPLATE_SERVICE] Updated template {template_id}: {sorted(changes)}")
        return template

    async def soft_delete(self, template_id: int, org_id: int, actor: Optional[Actor] = None) -> AssessmentTemplate:
        await self._get_accessible(template_id, org_id, AccessLevel.ADMIN, actor)
        template = await self.repository.soft_delete(template_id)
        logger.info(f"[TEMPLATE_SERVICE] Soft-deleted template {template_id}")
        return template

    async def link_organization(
        self,
        template_id: int,
        target_org_id: int,
        access_level: str,
        org_id: int,
        actor: Optional[Actor] = None,
    ):
        await self._get_accessible(template_id, org_id, AccessLevel.ADMIN, actor)
        return await self.repository.upsert_org_link(template_id, target_org_id, AccessLevel(access_level).value)


class SectionService:
    """Ordered sections of a template."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = SectionRepository(db)
        self.template_repository = TemplateRepository(db)

    async def _get_live(self, section_id: int) -> TemplateSection:
        section = await self.repository.get_active(section_id)
        if not section:
            raise NotFoundError("Section not found")
        return section

    async def create(self, data: SectionCreateRequest) -> TemplateSection:
        if not await self.template_repository.get_active(data.template_id):
            raise ValidationError("Invalid templateId", field="template_id")
        order = data.order
        if order is None:
            order = await self.repository.count_live(data.template_id)
        return await self.repository.create(template_id=data.template_id, title=data.title, order=order)

    async def list(self, template_id: int) -> List[TemplateSection]:
        return await self.repository.list_live(template_id)

    async def update(self, section_id: int, data: SectionUpdateRequest) -> TemplateSection:
        await self._get_live(section_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        return await self.repository.update(section_id, **changes)

    async def reorder(self, template_id: int, section_ids: List[int]) -> List[TemplateSection]:
        """Apply a full permutation of the live sections as the new order."""
        existing = await self.repository.list_live(template_id)
        existing_ids = {s.id for s in existing}
        if len(existing) != len(section_ids) or set(section_ids) != existing_ids:
            raise ValidationError("sectionIds mismatch", field="section_ids")

        by_id = {s.id: s for s in existing}
        async with atomic(self.db):
            for index, section_id in enumerate(section_ids):
                by_id[section_id].order = index
        return await self.repository.list_live(template_id)

    async def soft_delete(self, section_id: int) -> TemplateSection:
        section = await self._get_live(section_id)
        deleted = await self.repository.soft_delete(section_id)
        await _compact_best_effort(self.db, self.repository, section.template_id, "section")
        return deleted


class TemplateQuestionService:
    """Links binding questions into sections."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = TemplateQuestionRepository(db)
        self.section_repository = SectionRepository(db)
        self.question_repository = QuestionRepository(db)

    async def _require_section(self, section_id: int) -> TemplateSection:
        section = await self.section_repository.get_active(section_id)
        if not section:
            raise ValidationError("Invalid sectionId", field="section_id")
        return section

    async def _require_question(self, question_id: int) -> None:
        if not await self.question_repository.get_active(question_id):
            raise ValidationError("Invalid questionId", field="question_id")

    @staticmethod
    def _link_values(item: Any, default_order: int) -> Dict[str, Any]:
        perspectives = validate_perspectives(item.perspectives)
        return {
            "question_id": item.question_id,
            "order": item.order if item.order is not None else default_order,
            "perspectives": perspectives if perspectives is not None else [Perspective.SELF.value],
            "required": item.required if item.required is not None else True,
        }

    async def add(self, data: TemplateQuestionCreateRequest) -> TemplateQuestion:
        await self._require_section(data.section_id)
        await self._require_question(data.question_id)
        default_order = await self.repository.count_live(data.section_id)
        link = await self.repository.create(
            section_id=data.section_id, **self._link_values(data, default_order)
        )
        logger.info(f"[TEMPLATE_QUESTION_SERVICE] Linked question {data.question_id} into section {data.section_id}")
        return link

    async def list(self, section_id: int) -> List[TemplateQuestion]:
        return await self.repository.list_live(section_id, with_questions=True)

    async def update(self, link_id: int, data: TemplateQuestionUpdateRequest) -> TemplateQuestion:
        if not await self.repository.get_by_id(link_id):
            raise NotFoundError("TemplateQuestion not found")
        changes = {}
        if data.order is not None:
            changes["order"] = data.order
        if data.perspectives is not None:
            changes["perspectives"] = validate_perspectives(data.perspectives)
        if data.required is not None:
            changes["required"] = data.required
        return await self.repository.update(link_id, **changes)

    async def bulk_set(self, section_id: int, items: List[TemplateQuestionItem]) -> List[TemplateQuestion]:
        """Replace every link of the section in one transaction."""
        await self._require_section(section_id)
        values = [self._link_values(item, index) for index, item in enumerate(items)]
        for value in values:
            await self._require_question(value["question_id"])

        async with atomic(self.db):
            removed = await self.repository.delete_for_section(section_id)
            for value in values:
                self.db.add(TemplateQuestion(section_id=section_id, **value))
        logger.info(
            f"[TEMPLATE_QUESTION_SERVICE] Section {section_id}: replaced {removed} links with {len(values)}"
        )
        return await self.list(section_id)

    async def remove(self, link_id: int) -> Dict[str, Any]:
        existing = await self.repository.get_by_id(link_id)
        if not existing:
            raise NotFoundError("TemplateQuestion not found")
        if existing.deleted_at is not None:
            return {"id": link_id, "soft_deleted": True, "already": True}
        await self.repository.soft_delete(link_id)
        await _compact_best_effort(self.db, self.repository, existing.section_id, "template question")
        return {"id": link_id, "soft_deleted": True}

    async def restore(self, link_id: int) -> Dict[str, Any]:
        existing = await self.repository.get_by_id(link_id)
        if not existing or existing.deleted_at is None:
            raise NotFoundError("Soft-deleted link not found")
        await self.repository.update(link_id, deleted_at=None)
        async with atomic(self.db):
            await self.repository.compact_order(existing.section_id)
        return {"id": link_id, "restored": True}


async def _compact_best_effort(db: AsyncSession, repository, parent_id: int, label: str) -> None:
    """Renumber siblings after a soft-delete; failure only affects display order."""
    try:
        async with atomic(db):
            moved = await repository.compact_order(parent_id)
        if moved:
            logger.debug(f"[TEMPLATE_SERVICE] Compacted {moved} {label} rows under {parent_id}")
    except SQLAlchemyError as e:
        logger.warning(f"[TEMPLATE_SERVICE] Order compaction failed for {label} parent {parent_id}: {e}")
