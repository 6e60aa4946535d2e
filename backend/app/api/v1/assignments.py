"""Assignment API endpoints."""
from typing import List

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_actor, get_db, org_context, session_scope
from app.models.organization import Actor
from app.schemas.common import DeletedResponse
from app.schemas.session import (
    AssignmentBulkRequest,
    AssignmentCreateRequest,
    AssignmentDetail,
    AssignmentResponse,
    AssignmentUpdateRequest,
    BulkAssignResponse,
)
from app.services.access_service import ResourceAccessService
from app.services.assignment_service import AssignmentService

logger = structlog.get_logger()

router = APIRouter(tags=["assignments"])


async def _scoped_service(db: AsyncSession, assignment_id: int, org_id: int, actor: Actor):
    """Service for an assignment whose session (checked here) belongs to the organization."""
    service = AssignmentService(db)
    assignment = await service.repository.get_by_id(assignment_id)
    if assignment is not None:
        await ResourceAccessService(db).check_session(assignment.session_id, org_id, actor)
    return service


@router.post("/assignments", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def add_assignment(
    request: AssignmentCreateRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    await ResourceAccessService(db).check_session(request.session_id, org_id, actor)
    assignment = await AssignmentService(db).add(request)
    return AssignmentResponse.model_validate(assignment)


@router.post("/assignments/bulk", response_model=BulkAssignResponse)
async def bulk_assign(
    request: AssignmentBulkRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> BulkAssignResponse:
    """Either fan one respondent out over subjects (non-SELF) or self-assign many users."""
    await ResourceAccessService(db).check_session(request.session_id, org_id, actor)
    result = await AssignmentService(db).bulk_assign(request)
    logger.info("bulk_assign", session_id=request.session_id, created=result["created"])
    return BulkAssignResponse(**result)


@router.get("/sessions/{session_id}/assignments", response_model=List[AssignmentDetail])
async def list_assignments(
    session_id: int,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> List[AssignmentDetail]:
    assignments = await AssignmentService(db).list(session_id)
    return [AssignmentDetail.model_validate(a) for a in assignments]


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    service = await _scoped_service(db, assignment_id, org_id, actor)
    return AssignmentResponse.model_validate(await service.get(assignment_id))


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    request: AssignmentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    service = await _scoped_service(db, assignment_id, org_id, actor)
    return AssignmentResponse.model_validate(await service.update(assignment_id, request))


@router.delete("/assignments/{assignment_id}", response_model=DeletedResponse)
async def remove_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    service = await _scoped_service(db, assignment_id, org_id, actor)
    result = await service.remove(assignment_id)
    return DeletedResponse(id=result["id"])


@router.post("/assignments/{assignment_id}/restore", response_model=AssignmentResponse)
async def restore_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    service = await _scoped_service(db, assignment_id, org_id, actor)
    return AssignmentResponse.model_validate(await service.restore(assignment_id))
