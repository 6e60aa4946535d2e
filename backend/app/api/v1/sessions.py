"""Session API endpoints."""
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_actor, get_db, org_context, session_scope
from app.models.enums import AccessLevel
from app.models.organization import Actor
from app.schemas.common import DeletedResponse
from app.schemas.question_bank import QuestionResponse
from app.schemas.response import (
    PerspectiveQuestion,
    PerspectiveQuestionsResponse,
    PerspectiveSection,
    ResponseRead,
)
from app.schemas.session import (
    AssignmentResponse,
    SessionCreateRequest,
    SessionFullResponse,
    SessionListResponse,
    SessionResponse,
    SessionUpdateRequest,
    UserSessionListResponse,
    UserSessionResponse,
)
from app.schemas.template import SectionDetail, TemplateResponse
from app.services.access_service import OrgContextSources, ResourceAccessService
from app.services.assignment_service import AssignmentService
from app.services.session_service import SessionService

logger = structlog.get_logger()

router = APIRouter(prefix="/sessions", tags=["sessions"])

SESSION_STATE_PATTERN = "^(SCHEDULED|IN_PROGRESS|ANALYZING|COMPLETED|CANCELLED)$"


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreateRequest,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(org_context(sources=OrgContextSources(body_key="organization_id", strict=True))),
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """Schedule a session of an ACTIVE template the organization may use."""
    await ResourceAccessService(db).check_template(request.template_id, org_id, AccessLevel.USE, actor=actor)
    session = await SessionService(db).create(request)
    logger.info("session_created", session_id=session.id, template_id=session.template_id, organization_id=org_id)
    return SessionResponse.model_validate(session)


@router.get("/", response_model=SessionListResponse)
async def list_sessions(
    template_id: Optional[int] = None,
    state: Optional[str] = Query(None, pattern=SESSION_STATE_PATTERN),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> SessionListResponse:
    items, total, page, page_size = await SessionService(db).list(
        organization_id=org_id,
        template_id=template_id,
        state=state,
        search=search,
        page=page,
        page_size=page_size,
    )
    return SessionListResponse(
        items=[SessionResponse.model_validate(s) for s in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/me", response_model=UserSessionListResponse)
async def list_my_sessions(
    state: Optional[str] = Query(None, pattern=SESSION_STATE_PATTERN),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    org_id: Optional[int] = Depends(org_context(optional=True)),
    db: AsyncSession = Depends(get_db),
) -> UserSessionListResponse:
    """Sessions the caller answers in, across organizations unless one is given."""
    entries, total, page, page_size = await SessionService(db).list_for_user(
        actor.id, organization_id=org_id, state=state, search=search, page=page, page_size=page_size
    )
    items = [
        UserSessionResponse(
            **SessionResponse.model_validate(entry["session"]).model_dump(),
            assigned_at=entry["assigned_at"],
            perspectives=entry["perspectives"],
        )
        for entry in entries
    ]
    return UserSessionListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    return SessionResponse.model_validate(await SessionService(db).get(session_id))


@router.get("/{session_id}/full", response_model=SessionFullResponse)
async def get_session_full(
    session_id: int,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> SessionFullResponse:
    full = await SessionService(db).get_full(session_id)
    return SessionFullResponse(
        **SessionResponse.model_validate(full["session"]).model_dump(),
        template=TemplateResponse.model_validate(full["template"]),
        sections=[SectionDetail.from_section(section) for section in full["sections"]],
        assignments=[AssignmentResponse.model_validate(a) for a in full["assignments"]],
    )


@router.get("/{session_id}/question-count")
async def get_session_question_count(
    session_id: int,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, int]:
    return await SessionService(db).get_question_count(session_id)


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    request: SessionUpdateRequest,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """Update fields; a state change must follow the transition table unless ``force``."""
    session = await SessionService(db).update(session_id, request)
    return SessionResponse.model_validate(session)


@router.delete("/{session_id}", response_model=DeletedResponse)
async def delete_session(
    session_id: int,
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await SessionService(db).soft_delete(session_id)
    logger.info("session_deleted", session_id=session_id, organization_id=org_id)
    return DeletedResponse(id=session_id)


@router.get("/{session_id}/perspectives")
async def get_user_perspectives(
    session_id: int,
    user_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    return await SessionService(db).get_user_perspectives(session_id, user_id or actor.id)


@router.get("/{session_id}/questions", response_model=PerspectiveQuestionsResponse)
async def get_questions_for_perspective(
    session_id: int,
    perspective: str,
    user_id: Optional[int] = None,
    subject_user_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> PerspectiveQuestionsResponse:
    """Ordered questions one respondent answers under a perspective, with saved answers."""
    projection = await SessionService(db).get_questions_for_user_perspective(
        session_id, user_id or actor.id, perspective, subject_user_id
    )
    sections = [
        PerspectiveSection(
            id=section["id"],
            title=section["title"],
            order=section["order"],
            questions=[
                PerspectiveQuestion(
                    template_question_id=q["template_question_id"],
                    question_id=q["question_id"],
                    required=q["required"],
                    order=q["order"],
                    question=QuestionResponse.model_validate(q["question"]),
                )
                for q in section["questions"]
            ],
        )
        for section in projection["sections"]
    ]
    return PerspectiveQuestionsResponse(
        session=SessionResponse.model_validate(projection["session"]),
        assignment=AssignmentResponse.model_validate(projection["assignment"]),
        sections=sections,
        responses=[ResponseRead.model_validate(r) for r in projection["responses"]],
    )


@router.post("/{session_id}/self-assignment", response_model=AssignmentResponse)
async def ensure_self_assignment(
    session_id: int,
    actor: Actor = Depends(get_current_actor),
    org_id: int = Depends(session_scope),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    """Idempotently assign the caller to answer about themselves."""
    assignment, created = await AssignmentService(db).ensure_self_assignment(session_id, actor.id)
    logger.info("self_assignment", session_id=session_id, user_id=actor.id, created=created)
    return AssignmentResponse.model_validate(assignment)
