"""Response API endpoints."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_actor, get_db, org_context, session_scope
from app.models.organization import Actor
from app.schemas.common import DeletedResponse
from app.schemas.response import (
    ResponseBulkUpsertRequest,
    ResponseBulkUpsertResponse,
    ResponseListResponse,
    ResponseRead,
    ResponseUpsertRequest,
)
from app.services.access_service import ResourceAccessService
from app.services.response_service import ResponseService

logger = structlog.get_logger()

router = APIRouter(tags=["responses"])


@router.post("/responses", response_model=ResponseRead)
async def upsert_response(
    request: ResponseUpsertRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> ResponseRead:
    """Create or replace the answer for one (assignment, template question) pair."""
    await ResourceAccessService(db).check_session(request.session_id, org_id, actor)
    response = await ResponseService(db).upsert(request)
    return ResponseRead.model_validate(response)


@router.post("/responses/bulk", response_model=ResponseBulkUpsertResponse)
async def bulk_upsert_responses(
    request: ResponseBulkUpsertRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> ResponseBulkUpsertResponse:
    access = ResourceAccessService(db)
    for session_id in sorted({item.session_id for item in request.items}):
        await access.check_session(session_id, org_id, actor)
    result = await ResponseService(db).bulk_upsert(request.items)
    logger.info("responses_bulk_upserted", count=result["count"], organization_id=org_id)
    return ResponseBulkUpsertResponse(
        count=result["count"],
        items=[ResponseRead.model_validate(r) for r in result["items"]],
    )


@router.get("/sessions/{session_id}/responses", response_model=ResponseListResponse)
async def list_responses(
    session_id: int,
    assignment_id: Optional[int] = None,
    user_id: Optional[int] = None,
    template_question_id: Optional[int] = None,
    question_id: Optional[int] = None,
    perspective: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> ResponseListResponse:
    items, total, page, page_size = await ResponseService(db).list(
        session_id,
        assignment_id=assignment_id,
        user_id=user_id,
        template_question_id=template_question_id,
        question_id=question_id,
        perspective=perspective,
        page=page,
        page_size=page_size,
    )
    return ResponseListResponse(
        items=[ResponseRead.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/responses/{response_id}", response_model=ResponseRead)
async def get_response(
    response_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> ResponseRead:
    response = await ResponseService(db).get(response_id)
    await ResourceAccessService(db).check_session(response.session_id, org_id, actor)
    return ResponseRead.model_validate(response)


@router.delete("/responses/{response_id}", response_model=DeletedResponse)
async def delete_response(
    response_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    service = ResponseService(db)
    response = await service.get(response_id)
    await ResourceAccessService(db).check_session(response.session_id, org_id, actor)
    result = await service.delete(response_id)
    return DeletedResponse(id=result["id"])
