"""Option set API endpoints."""
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, org_context
from app.schemas.common import DeletedResponse, OrganizationLinkRequest, OrganizationLinkResponse
from app.schemas.question_bank import (
    OptionResponse,
    OptionSetCreateRequest,
    OptionSetListResponse,
    OptionSetOptionsRequest,
    OptionSetResponse,
    OptionSetUpdateRequest,
    OptionUpdateRequest,
)
from app.services.question_bank_service import OptionSetService

logger = structlog.get_logger()

router = APIRouter(prefix="/option-sets", tags=["option-sets"])


@router.post("/", response_model=OptionSetResponse, status_code=status.HTTP_201_CREATED)
async def create_option_set(
    request: OptionSetCreateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OptionSetResponse:
    option_set = await OptionSetService(db).create(request, org_id)
    logger.info("option_set_created", option_set_id=option_set.id, options=len(option_set.options))
    return OptionSetResponse.model_validate(option_set)


@router.get("/", response_model=OptionSetListResponse)
async def list_option_sets(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OptionSetListResponse:
    items, total, page, page_size = await OptionSetService(db).list(org_id, search, page, page_size)
    return OptionSetListResponse(
        items=[OptionSetResponse.model_validate(s) for s in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{option_set_id}", response_model=OptionSetResponse)
async def get_option_set(
    option_set_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OptionSetResponse:
    return OptionSetResponse.model_validate(await OptionSetService(db).get(option_set_id, org_id))


@router.patch("/{option_set_id}", response_model=OptionSetResponse)
async def update_option_set(
    option_set_id: int,
    request: OptionSetUpdateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OptionSetResponse:
    """Update fields; a given ``options`` list replaces all options."""
    option_set = await OptionSetService(db).update(option_set_id, request, org_id)
    return OptionSetResponse.model_validate(option_set)


@router.delete("/{option_set_id}", response_model=DeletedResponse)
async def delete_option_set(
    option_set_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await OptionSetService(db).soft_delete(option_set_id, org_id)
    return DeletedResponse(id=option_set_id)


@router.post("/{option_set_id}/links", response_model=OrganizationLinkResponse)
async def link_option_set_organization(
    option_set_id: int,
    request: OrganizationLinkRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OrganizationLinkResponse:
    link = await OptionSetService(db).link_organization(
        option_set_id, request.target_organization_id, request.access_level, org_id
    )
    return OrganizationLinkResponse.model_validate(link)


@router.get("/{option_set_id}/options", response_model=List[OptionResponse])
async def list_options(
    option_set_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> List[OptionResponse]:
    options = await OptionSetService(db).list_options(option_set_id, org_id)
    return [OptionResponse.model_validate(o) for o in options]


@router.put("/{option_set_id}/options", response_model=List[OptionResponse])
async def replace_options(
    option_set_id: int,
    request: OptionSetOptionsRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> List[OptionResponse]:
    options = await OptionSetService(db).bulk_replace_options(option_set_id, request.options, org_id)
    logger.info("option_set_options_replaced", option_set_id=option_set_id, count=len(options))
    return [OptionResponse.model_validate(o) for o in options]


@router.patch("/{option_set_id}/options/{option_id}", response_model=OptionResponse)
async def update_option(
    option_set_id: int,
    option_id: int,
    request: OptionUpdateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OptionResponse:
    option = await OptionSetService(db).update_option(option_set_id, option_id, request, org_id)
    return OptionResponse.model_validate(option)


@router.delete("/{option_set_id}/options/{option_id}", response_model=DeletedResponse)
async def remove_option(
    option_set_id: int,
    option_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    removed = await OptionSetService(db).remove_option(option_set_id, option_id, org_id)
    return DeletedResponse(id=removed)
