"""Question API endpoints."""
import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, org_context
from app.schemas.common import DeletedResponse
from app.schemas.question_bank import QuestionCreateRequest, QuestionResponse, QuestionUpdateRequest
from app.services.question_bank_service import QuestionService

logger = structlog.get_logger()

router = APIRouter(prefix="/questions", tags=["questions"])


@router.post("/", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    request: QuestionCreateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    question = await QuestionService(db).create(request, org_id)
    logger.info("question_created", question_id=question.id, bank_id=question.bank_id, type=question.type)
    return QuestionResponse.model_validate(question)


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(
    question_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    return QuestionResponse.model_validate(await QuestionService(db).get(question_id, org_id))


@router.patch("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: int,
    request: QuestionUpdateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    question = await QuestionService(db).update(question_id, request, org_id)
    return QuestionResponse.model_validate(question)


@router.delete("/{question_id}", response_model=DeletedResponse)
async def delete_question(
    question_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await QuestionService(db).soft_delete(question_id, org_id)
    return DeletedResponse(id=question_id)
