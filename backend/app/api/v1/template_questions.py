"""Template-question link API endpoints."""
from typing import Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import TemplateAccess, get_db, require_template_access
from app.models.enums import AccessLevel
from app.schemas.template import (
    TemplateQuestionBulkSetRequest,
    TemplateQuestionCreateRequest,
    TemplateQuestionDetail,
    TemplateQuestionResponse,
    TemplateQuestionUpdateRequest,
)
from app.services.template_service import TemplateQuestionService

logger = structlog.get_logger()

router = APIRouter(tags=["template-questions"])


@router.post("/template-questions", response_model=TemplateQuestionResponse, status_code=status.HTTP_201_CREATED)
async def add_template_question(
    request: TemplateQuestionCreateRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT)),
    db: AsyncSession = Depends(get_db),
) -> TemplateQuestionResponse:
    link = await TemplateQuestionService(db).add(request)
    return TemplateQuestionResponse.model_validate(link)


@router.get("/sections/{section_id}/questions", response_model=List[TemplateQuestionDetail])
async def list_template_questions(
    section_id: int,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.USE)),
    db: AsyncSession = Depends(get_db),
) -> List[TemplateQuestionDetail]:
    links = await TemplateQuestionService(db).list(section_id)
    return [TemplateQuestionDetail.model_validate(link) for link in links]


@router.put("/sections/{section_id}/questions", response_model=List[TemplateQuestionDetail])
async def bulk_set_template_questions(
    section_id: int,
    request: TemplateQuestionBulkSetRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT)),
    db: AsyncSession = Depends(get_db),
) -> List[TemplateQuestionDetail]:
    """Replace every question link of the section in one transaction."""
    links = await TemplateQuestionService(db).bulk_set(section_id, request.items)
    logger.info("section_questions_replaced", section_id=section_id, count=len(links))
    return [TemplateQuestionDetail.model_validate(link) for link in links]


@router.patch("/template-questions/{id}", response_model=TemplateQuestionResponse)
async def update_template_question(
    id: int,
    request: TemplateQuestionUpdateRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT, resource_kind="template_question")),
    db: AsyncSession = Depends(get_db),
) -> TemplateQuestionResponse:
    link = await TemplateQuestionService(db).update(id, request)
    return TemplateQuestionResponse.model_validate(link)


@router.delete("/template-questions/{id}")
async def remove_template_question(
    id: int,
    access: TemplateAccess = Depends(
        require_template_access(AccessLevel.ADMIN, resource_kind="template_question")
    ),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    return await TemplateQuestionService(db).remove(id)


@router.post("/template-questions/{id}/restore")
async def restore_template_question(
    id: int,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT, resource_kind="template_question")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    return await TemplateQuestionService(db).restore(id)
