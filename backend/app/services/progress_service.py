"""Completion progress for assignments and respondents."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.enums import PERSPECTIVE_VALUES, ProgressStatus
from app.repositories.assignment import AssignmentRepository
from app.repositories.response import ResponseRepository
from app.repositories.session import SessionRepository
from app.repositories.template import TemplateQuestionRepository

logger = logging.getLogger(__name__)


def derive_status(total: int, answered: int) -> str:
    if total == 0:
        return ProgressStatus.NO_QUESTIONS.value
    if answered == 0:
        return ProgressStatus.NOT_STARTED.value
    if answered >= total:
        return ProgressStatus.COMPLETED.value
    return ProgressStatus.IN_PROGRESS.value


def percent_of(total: int, answered: int) -> int:
    if total == 0:
        return 0
    return int(round(100 * answered / total))


class ProgressService:
    """Read-only aggregation over assignments and their responses."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.assignment_repository = AssignmentRepository(db)
        self.response_repository = ResponseRepository(db)
        self.session_repository = SessionRepository(db)
        self.template_question_repository = TemplateQuestionRepository(db)

    async def assignment_progress(self, assignment_id: int) -> Dict[str, Any]:
        assignment = await self.assignment_repository.get_active(assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")
        session = await self.session_repository.get_by_id(assignment.session_id)

        counts = await self.template_question_repository.count_for_perspectives(
            session.template_id, [assignment.perspective]
        )
        total = counts[assignment.perspective]
        answered = await self.response_repository.count_for_assignments([assignment.id])

        return {
            "assignment_id": assignment.id,
            "total": total,
            "answered": answered,
            "percent": percent_of(total, answered),
            "status": derive_status(total, answered),
            "context": {
                "session_id": assignment.session_id,
                "template_id": session.template_id,
                "perspective": assignment.perspective,
                "respondent_user_id": assignment.respondent_user_id,
                "subject_user_id": assignment.subject_user_id,
            },
        }

    async def user_progress(
        self,
        session_id: int,
        user_id: int,
        perspective: Optional[str] = None,
        subject_user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Progress across every live assignment of ``user_id`` in the session.

        The total is the sum of each distinct perspective's applicable
        question count, so a user assigned under two perspectives
        accumulates both.
        """
        if perspective and perspective not in PERSPECTIVE_VALUES:
            raise ValidationError("Invalid perspective", field="perspective")
        session = await self.session_repository.get_active(session_id)
        if not session:
            raise NotFoundError("Session not found")

        result = {
            "session_id": session_id,
            "user_id": user_id,
            "perspective": perspective,
            "subject_user_id": subject_user_id,
        }
        assignments = await self.assignment_repository.list_for_respondent(
            session_id, user_id, perspective=perspective, subject_user_id=subject_user_id
        )
        if not assignments:
            return {
                **result,
                "assignments": 0,
                "total": 0,
                "answered": 0,
                "percent": 0,
                "status": ProgressStatus.NOT_ASSIGNED.value,
            }

        perspectives = []
        for assignment in assignments:
            if assignment.perspective not in perspectives:
                perspectives.append(assignment.perspective)
        counts = await self.template_question_repository.count_for_perspectives(session.template_id, perspectives)
        total = sum(counts.values())
        answered = await self.response_repository.count_for_assignments([a.id for a in assignments])

        logger.debug(
            f"[PROGRESS_SERVICE] User {user_id} in session {session_id}: {answered}/{total} "
            f"across {len(assignments)} assignments"
        )
        return {
            **result,
            "assignments": len(assignments),
            "total": total,
            "answered": answered,
            "percent": percent_of(total, answered),
            "status": derive_status(total, answered),
        }
