"""Template API endpoints."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_actor, get_db, org_context
from app.models.organization import Actor
from app.schemas.common import DeletedResponse, OrganizationLinkRequest, OrganizationLinkResponse
from app.schemas.template import (
    SectionDetail,
    TemplateCreateRequest,
    TemplateFullResponse,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdateRequest,
)
from app.services.template_service import TemplateService

logger = structlog.get_logger()

router = APIRouter(prefix="/templates", tags=["templates"])


@router.post("/", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateCreateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    template = await TemplateService(db).create(request, org_id)
    logger.info("template_created", template_id=template.id, organization_id=org_id)
    return TemplateResponse.model_validate(template)


@router.get("/", response_model=TemplateListResponse)
async def list_templates(
    search: Optional[str] = None,
    state: Optional[str] = Query(None, pattern="^(DRAFT|ACTIVE|CLOSED|ARCHIVED)$"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> TemplateListResponse:
    """Templates created by or shared with the organization."""
    items, total, page, page_size = await TemplateService(db).list(
        org_id, search=search, state=state, page=page, page_size=page_size
    )
    return TemplateListResponse(
        items=[TemplateResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{id}", response_model=TemplateResponse)
async def get_template(
    id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(resource_kind="template")),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    template = await TemplateService(db).get(id, org_id, actor)
    return TemplateResponse.model_validate(template)


@router.get("/{id}/full", response_model=TemplateFullResponse)
async def get_template_full(
    id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(resource_kind="template")),
    db: AsyncSession = Depends(get_db),
) -> TemplateFullResponse:
    """Template with ordered sections and their live questions."""
    template, sections = await TemplateService(db).get_full(id, org_id, actor)
    return TemplateFullResponse(
        **TemplateResponse.model_validate(template).model_dump(),
        sections=[SectionDetail.from_section(section) for section in sections],
    )


@router.patch("/{id}", response_model=TemplateResponse)
async def update_template(
    id: int,
    request: TemplateUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(resource_kind="template")),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    template = await TemplateService(db).update(id, request, org_id, actor)
    return TemplateResponse.model_validate(template)


@router.delete("/{id}", response_model=DeletedResponse)
async def delete_template(
    id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(resource_kind="template")),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await TemplateService(db).soft_delete(id, org_id, actor)
    logger.info("template_deleted", template_id=id, organization_id=org_id)
    return DeletedResponse(id=id)


@router.post("/{id}/links", response_model=OrganizationLinkResponse)
async def link_template_organization(
    id: int,
    request: OrganizationLinkRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(resource_kind="template")),
    db: AsyncSession = Depends(get_db),
) -> OrganizationLinkResponse:
    """Share the template with another organization."""
    link = await TemplateService(db).link_organization(
        id, request.target_organization_id, request.access_level, org_id, actor
    )
    return OrganizationLinkResponse.model_validate(link)
