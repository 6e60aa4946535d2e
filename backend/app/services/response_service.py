"""Response upsert service.

Exactly one response row exists per (assignment, template question); a
resubmission updates that row in place.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ApplicationError,
    NotFoundError,
    SessionNotAcceptingResponsesError,
    ValidationError,
)
from app.models.enums import PERSPECTIVE_VALUES
from app.models.session import AssessmentResponse
from app.repositories.assignment import AssignmentRepository
from app.repositories.response import ResponseRepository
from app.repositories.session import SessionRepository
from app.repositories.template import TemplateQuestionRepository
from app.schemas.response import ResponseUpsertRequest
from app.services.response_validation import validate_value
from app.services.session_service import ACCEPTING_RESPONSES

logger = logging.getLogger(__name__)

RESPONSE_DEFAULT_PAGE_SIZE = 50


class ResponseService:
    """Validates and persists answers."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = ResponseRepository(db)
        self.assignment_repository = AssignmentRepository(db)
        self.session_repository = SessionRepository(db)
        self.template_question_repository = TemplateQuestionRepository(db)

    async def upsert(self, data: ResponseUpsertRequest) -> AssessmentResponse:
        assignment = await self.assignment_repository.get_active(data.assignment_id)
        if not assignment:
            raise ValidationError("Invalid assignmentId", field="assignment_id")
        if assignment.session_id != data.session_id:
            raise ValidationError("Assignment does not belong to this session", field="session_id")

        link = await self.template_question_repository.get_with_context(data.template_question_id)
        if (
            not link
            or link.deleted_at is not None
            or link.section.deleted_at is not None
            or link.section.template.deleted_at is not None
            or link.question.deleted_at is not None
        ):
            raise ValidationError("Invalid templateQuestionId", field="template_question_id")

        session = await self.session_repository.get_by_id(assignment.session_id)
        if link.section.template_id != session.template_id:
            raise ValidationError("Template question is not part of this session's template", field="template_question_id")

        if session.state not in ACCEPTING_RESPONSES:
            raise SessionNotAcceptingResponsesError(
                "Session not accepting responses", details={"state": session.state}
            )

        if not link.applies_to(assignment.perspective):
            raise ValidationError(
                "Perspective not allowed for this question",
                field="perspective",
                details={"perspective": assignment.perspective},
            )

        question = link.question
        value = validate_value(
            question.type,
            scale_value=data.scale_value,
            option_value=data.option_value,
            option_values=data.option_values,
            text_value=data.text_value,
            min_scale=question.min_scale,
            max_scale=question.max_scale,
            valid_options=question.option_values(),
        )

        existing = await self.repository.get_for_pair(assignment.id, link.id)
        if existing:
            for column, column_value in value.as_columns().items():
                setattr(existing, column, column_value)
            await self.db.flush()
            await self.db.refresh(existing)
            logger.debug(f"[RESPONSE_SERVICE] Updated response {existing.id} for assignment {assignment.id}")
            return existing

        response = await self.repository.create(
            assignment_id=assignment.id,
            session_id=assignment.session_id,
            template_question_id=link.id,
            **value.as_columns(),
        )
        logger.debug(f"[RESPONSE_SERVICE] Created response {response.id} for assignment {assignment.id}")
        return response

    async def bulk_upsert(self, items: List[ResponseUpsertRequest]) -> Dict[str, Any]:
        """Upsert items one by one; a failing item stops the batch, earlier ones stay."""
        results = []
        for index, item in enumerate(items):
            try:
                results.append(await self.upsert(item))
            except ApplicationError as e:
                e.details.setdefault("index", index)
                if results:
                    await self.db.commit()
                    logger.warning(
                        f"[RESPONSE_SERVICE] Bulk upsert stopped at item {index}, kept {len(results)} responses"
                    )
                raise
        logger.info(f"[RESPONSE_SERVICE] Bulk upsert stored {len(results)} responses")
        return {"count": len(results), "items": results}

    async def list(
        self,
        session_id: int,
        assignment_id: Optional[int] = None,
        user_id: Optional[int] = None,
        template_question_id: Optional[int] = None,
        question_id: Optional[int] = None,
        perspective: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[AssessmentResponse], int, int, int]:
        page = page if page and page > 0 else 1
        page_size = min(page_size or RESPONSE_DEFAULT_PAGE_SIZE, settings.RESPONSE_MAX_PAGE_SIZE)
        empty = ([], 0, page, page_size)

        if perspective and perspective not in PERSPECTIVE_VALUES:
            raise ValidationError("Invalid perspective", field="perspective")

        assignment_ids = None
        if user_id is not None or perspective:
            assignment_ids = await self.assignment_repository.ids_for_filters(
                session_id, user_id=user_id, perspective=perspective
            )
            if assignment_id is not None:
                assignment_ids = [i for i in assignment_ids if i == assignment_id]
            if not assignment_ids:
                return empty
        elif assignment_id is not None:
            assignment_ids = [assignment_id]

        template_question_ids = [template_question_id] if template_question_id else None
        if question_id is not None:
            linked = await self.template_question_repository.ids_for_question(question_id)
            if template_question_ids is not None:
                linked = [i for i in linked if i in template_question_ids]
            if not linked:
                return empty
            template_question_ids = linked

        items, total = await self.repository.list_filtered(
            session_id,
            assignment_ids=assignment_ids,
            template_question_ids=template_question_ids,
            page=page,
            page_size=page_size,
        )
        return items, total, page, page_size

    async def get(self, response_id: int) -> AssessmentResponse:
        response = await self.repository.get_by_id(response_id)
        if not response:
            raise NotFoundError("Response not found")
        return response

    async def delete(self, response_id: int) -> Dict[str, int]:
        if not await self.repository.delete(response_id):
            raise NotFoundError("Response not found")
        logger.info(f"[RESPONSE_SERVICE] Deleted response {response_id}")
        return {"id": response_id}
