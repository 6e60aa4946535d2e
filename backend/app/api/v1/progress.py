"""Progress API endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_actor, get_db, org_context, session_scope
from app.models.organization import Actor
from app.schemas.response import AssignmentProgressResponse, UserProgressResponse
from app.services.access_service import ResourceAccessService
from app.services.progress_service import ProgressService

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/assignments/{assignment_id}", response_model=AssignmentProgressResponse)
async def get_assignment_progress(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> AssignmentProgressResponse:
    progress = await ProgressService(db).assignment_progress(assignment_id)
    await ResourceAccessService(db).check_session(progress["context"]["session_id"], org_id, actor)
    return AssignmentProgressResponse(**progress)


@router.get("/sessions/{session_id}/users/{user_id}", response_model=UserProgressResponse)
async def get_user_progress(
    session_id: int,
    user_id: int,
    perspective: Optional[str] = None,
    subject_user_id: Optional[int] = None,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> UserProgressResponse:
    """Progress summed over every assignment of the user in the session."""
    progress = await ProgressService(db).user_progress(session_id, user_id, perspective, subject_user_id)
    return UserProgressResponse(**progress)


@router.get("/sessions/{session_id}/me", response_model=UserProgressResponse)
async def get_my_progress(
    session_id: int,
    perspective: Optional[str] = None,
    subject_user_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> UserProgressResponse:
    progress = await ProgressService(db).user_progress(session_id, actor.id, perspective, subject_user_id)
    return UserProgressResponse(**progress)
