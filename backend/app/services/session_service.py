"""Session lifecycle service.

Sessions move through a fixed transition table; any other move needs an
explicit ``force``. Transitions are always checked against the persisted
state, never against a state supplied by the caller.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import IllegalStateTransitionError, NotFoundError, ValidationError
from app.models.enums import PERSPECTIVE_VALUES, Perspective, SessionState, TemplateState
from app.models.session import AssessmentSession
from app.repositories.assignment import AssignmentRepository
from app.repositories.organization import OrganizationRepository, TeamRepository
from app.repositories.response import ResponseRepository
from app.repositories.session import SessionRepository
from app.repositories.template import TemplateQuestionRepository, TemplateRepository
from app.schemas.session import SessionCreateRequest, SessionUpdateRequest

logger = logging.getLogger(__name__)

SESSION_STATE_FLOW: Dict[str, List[str]] = {
    SessionState.SCHEDULED.value: [SessionState.IN_PROGRESS.value, SessionState.CANCELLED.value],
    SessionState.IN_PROGRESS.value: [
        SessionState.ANALYZING.value,
        SessionState.COMPLETED.value,
        SessionState.CANCELLED.value,
    ],
    SessionState.ANALYZING.value: [SessionState.COMPLETED.value, SessionState.CANCELLED.value],
    SessionState.COMPLETED.value: [],
    SessionState.CANCELLED.value: [],
}

ACCEPTING_RESPONSES = (SessionState.SCHEDULED.value, SessionState.IN_PROGRESS.value)


def can_transition(current: str, target: str) -> bool:
    return target in SESSION_STATE_FLOW.get(current, [])


def check_transition(current: str, target: str, force: bool = False) -> None:
    """Raise IllegalStateTransitionError unless ``current -> target`` is allowed."""
    if target == current or force:
        return
    if not can_transition(current, target):
        raise IllegalStateTransitionError(
            f"Illegal state transition {current} -> {target}",
            details={"from": current, "to": target},
        )


def check_window(start_at: datetime, end_at: datetime) -> None:
    if end_at <= start_at:
        raise ValidationError("endAt must be after startAt", field="end_at")


class SessionService:
    """Service for session scheduling, lifecycle and respondent views."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = SessionRepository(db)
        self.organization_repository = OrganizationRepository(db)
        self.team_repository = TeamRepository(db)
        self.template_repository = TemplateRepository(db)
        self.template_question_repository = TemplateQuestionRepository(db)
        self.assignment_repository = AssignmentRepository(db)
        self.response_repository = ResponseRepository(db)

    async def _ensure_team(self, team_id: Optional[int], organization_id: int) -> None:
        if not team_id:
            return
        team = await self.team_repository.get_active(team_id)
        if not team or team.organization_id != organization_id:
            raise ValidationError("Invalid teamScopeId", field="team_scope_id")

    async def create(self, data: SessionCreateRequest) -> AssessmentSession:
        if not await self.organization_repository.exists_active(data.organization_id):
            raise ValidationError("Invalid organizationId", field="organization_id")

        template = await self.template_repository.get_active(data.template_id)
        if not template:
            raise ValidationError("Invalid templateId", field="template_id")
        if template.state != TemplateState.ACTIVE.value:
            raise ValidationError("Template must be ACTIVE", field="template_id")

        await self._ensure_team(data.team_scope_id, data.organization_id)
        check_window(data.start_at, data.end_at)

        session = await self.repository.create(
            organization_id=data.organization_id,
            template_id=data.template_id,
            team_scope_id=data.team_scope_id,
            name=data.name,
            description=data.description,
            start_at=data.start_at,
            end_at=data.end_at,
            state=SessionState.SCHEDULED.value,
            meta=data.meta or {},
        )
        logger.info(
            f"[SESSION_SERVICE] Created session {session.id} for template {data.template_id} "
            f"in organization {data.organization_id}"
        )
        return session

    async def list(
        self,
        organization_id: Optional[int] = None,
        template_id: Optional[int] = None,
        state: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[AssessmentSession], int, int, int]:
        page = page if page and page > 0 else 1
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        items, total = await self.repository.list_filtered(
            organization_id=organization_id,
            template_id=template_id,
            state=state,
            search=search,
            page=page,
            page_size=page_size,
        )
        return items, total, page, page_size

    async def get(self, session_id: int) -> AssessmentSession:
        session = await self.repository.get_active(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    async def get_full(self, session_id: int) -> Dict[str, Any]:
        """Session with its template, ordered sections and live assignments."""
        session = await self.repository.get_with_template(session_id)
        if not session:
            raise NotFoundError("Session not found")
        sections = await self.template_repository.get_ordered_sections(session.template_id)
        assignments = await self.assignment_repository.list_for_session(session_id)
        return {"session": session, "template": session.template, "sections": sections, "assignments": assignments}

    async def get_question_count(self, session_id: int) -> Dict[str, int]:
        session = await self.get(session_id)
        perspective_sets = await self.template_question_repository.live_perspective_sets(session.template_id)
        return {"session_id": session.id, "template_id": session.template_id, "total": len(perspective_sets)}

    async def update(self, session_id: int, data: SessionUpdateRequest) -> AssessmentSession:
        existing = await self.get(session_id)

        if data.start_at and data.end_at:
            check_window(data.start_at, data.end_at)

        if data.state and data.state != existing.state:
            check_transition(existing.state, data.state, force=data.force)
            logger.info(
                f"[SESSION_SERVICE] Session {session_id}: {existing.state} -> {data.state}"
                + (" (forced)" if data.force and not can_transition(existing.state, data.state) else "")
            )

        if data.team_scope_id is not None:
            await self._ensure_team(data.team_scope_id, existing.organization_id)

        changes = data.model_dump(exclude_unset=True, exclude={"force"})
        nullable = ("description", "team_scope_id")
        changes = {k: v for k, v in changes.items() if v is not None or k in nullable}
        return await self.repository.update(session_id, **changes)

    async def soft_delete(self, session_id: int) -> AssessmentSession:
        await self.get(session_id)
        session = await self.repository.soft_delete(session_id, state=SessionState.CANCELLED.value)
        logger.info(f"[SESSION_SERVICE] Soft-deleted session {session_id} (state forced to CANCELLED)")
        return session

    async def list_for_user(
        self,
        user_id: int,
        organization_id: Optional[int] = None,
        state: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int, int, int]:
        """Sessions where the user is a respondent, with assigned_at and perspectives."""
        page = page if page and page > 0 else 1
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        rows = await self.repository.list_for_respondent(user_id, organization_id=organization_id, state=state)

        grouped: Dict[int, Dict[str, Any]] = {}
        for session, assigned_at, perspective in rows:
            if search and search.lower() not in session.name.lower():
                continue
            entry = grouped.setdefault(
                session.id, {"session": session, "assigned_at": assigned_at, "perspectives": []}
            )
            if assigned_at and (entry["assigned_at"] is None or assigned_at < entry["assigned_at"]):
                entry["assigned_at"] = assigned_at
            if perspective not in entry["perspectives"]:
                entry["perspectives"].append(perspective)

        entries = list(grouped.values())
        start = (page - 1) * page_size
        return entries[start:start + page_size], len(entries), page, page_size

    async def get_user_perspectives(self, session_id: int, user_id: int) -> Dict[str, Any]:
        await self.get(session_id)
        assignments = await self.assignment_repository.list_for_respondent(session_id, user_id)
        perspectives = []
        for assignment in assignments:
            if assignment.perspective not in perspectives:
                perspectives.append(assignment.perspective)
        return {"session_id": session_id, "user_id": user_id, "perspectives": perspectives}

    async def get_questions_for_user_perspective(
        self,
        session_id: int,
        user_id: int,
        perspective: str,
        subject_user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Read-only ordered projection of what the user answers under ``perspective``."""
        if perspective not in PERSPECTIVE_VALUES:
            raise ValidationError(f"Invalid perspective: {perspective}", field="perspective")
        if perspective != Perspective.SELF.value and not subject_user_id:
            raise ValidationError("subjectUserId required for non-SELF", field="subject_user_id")

        session = await self.get(session_id)
        subject = subject_user_id or user_id
        assignments = await self.assignment_repository.list_for_respondent(
            session_id, user_id, perspective=perspective, subject_user_id=subject
        )
        if not assignments:
            raise NotFoundError("No assignment for this user/perspective")
        assignment = assignments[0]

        sections = []
        for section in await self.template_repository.get_ordered_sections(session.template_id):
            questions = [
                {
                    "template_question_id": link.id,
                    "question_id": link.question_id,
                    "required": link.required,
                    "order": link.order,
                    "question": link.question,
                }
                for link in section.live_questions
                if link.applies_to(perspective)
            ]
            sections.append({"id": section.id, "title": section.title, "order": section.order, "questions": questions})

        wanted = {q["template_question_id"] for s in sections for q in s["questions"]}
        responses = [
            r for r in await self.response_repository.list_for_assignment(assignment.id)
            if r.template_question_id in wanted
        ]
        return {"session": session, "assignment": assignment, "sections": sections, "responses": responses}
