"""Template section API endpoints."""
from typing import List

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import TemplateAccess, get_db, require_template_access
from app.models.enums import AccessLevel
from app.schemas.common import DeletedResponse
from app.schemas.template import SectionCreateRequest, SectionReorderRequest, SectionResponse, SectionUpdateRequest
from app.services.template_service import SectionService

logger = structlog.get_logger()

router = APIRouter(tags=["sections"])


@router.post("/sections", response_model=SectionResponse, status_code=status.HTTP_201_CREATED)
async def create_section(
    request: SectionCreateRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT)),
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    section = await SectionService(db).create(request)
    logger.info("section_created", section_id=section.id, template_id=access.template_id)
    return SectionResponse.model_validate(section)


@router.get("/templates/{template_id}/sections", response_model=List[SectionResponse])
async def list_sections(
    template_id: int,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.USE)),
    db: AsyncSession = Depends(get_db),
) -> List[SectionResponse]:
    sections = await SectionService(db).list(template_id)
    return [SectionResponse.model_validate(s) for s in sections]


@router.post("/templates/{template_id}/sections/reorder", response_model=List[SectionResponse])
async def reorder_sections(
    template_id: int,
    request: SectionReorderRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT)),
    db: AsyncSession = Depends(get_db),
) -> List[SectionResponse]:
    """Apply a full permutation of the template's live sections."""
    sections = await SectionService(db).reorder(template_id, request.section_ids)
    return [SectionResponse.model_validate(s) for s in sections]


@router.patch("/sections/{id}", response_model=SectionResponse)
async def update_section(
    id: int,
    request: SectionUpdateRequest,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.EDIT, resource_kind="section")),
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    section = await SectionService(db).update(id, request)
    return SectionResponse.model_validate(section)


@router.delete("/sections/{id}", response_model=DeletedResponse)
async def delete_section(
    id: int,
    access: TemplateAccess = Depends(require_template_access(AccessLevel.ADMIN, resource_kind="section")),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await SectionService(db).soft_delete(id)
    logger.info("section_deleted", section_id=id, template_id=access.template_id)
    return DeletedResponse(id=id)
