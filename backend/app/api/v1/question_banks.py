"""Question bank API endpoints."""
from typing import Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, org_context
from app.schemas.common import DeletedResponse, OrganizationLinkRequest, OrganizationLinkResponse
from app.schemas.question_bank import (
    QuestionBankCreateRequest,
    QuestionBankListResponse,
    QuestionBankResponse,
    QuestionBankUpdateRequest,
    QuestionListResponse,
    QuestionResponse,
)
from app.services.question_bank_service import QuestionBankService, QuestionService

logger = structlog.get_logger()

router = APIRouter(prefix="/question-banks", tags=["question-banks"])


@router.post("/", response_model=QuestionBankResponse, status_code=status.HTTP_201_CREATED)
async def create_bank(
    request: QuestionBankCreateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionBankResponse:
    bank = await QuestionBankService(db).create(request, org_id)
    logger.info("question_bank_created", bank_id=bank.id, organization_id=org_id)
    return QuestionBankResponse.model_validate(bank)


@router.get("/", response_model=QuestionBankListResponse)
async def list_banks(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionBankListResponse:
    items, total, page, page_size = await QuestionBankService(db).list(org_id, search, page, page_size)
    return QuestionBankListResponse(
        items=[QuestionBankResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{bank_id}", response_model=QuestionBankResponse)
async def get_bank(
    bank_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionBankResponse:
    return QuestionBankResponse.model_validate(await QuestionBankService(db).get(bank_id, org_id))


@router.get("/{bank_id}/question-count")
async def count_bank_questions(
    bank_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, int]:
    total = await QuestionBankService(db).count_questions(bank_id, org_id)
    return {"bank_id": bank_id, "total": total}


@router.get("/{bank_id}/questions", response_model=QuestionListResponse)
async def list_bank_questions(
    bank_id: int,
    search: Optional[str] = None,
    type: Optional[str] = Query(None, pattern="^(SCALE|TEXT|MULTI_CHOICE|SINGLE_CHOICE|BOOLEAN)$"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionListResponse:
    items, total, page, page_size = await QuestionService(db).list(
        bank_id, org_id, search=search, type=type, page=page, page_size=page_size
    )
    return QuestionListResponse(
        items=[QuestionResponse.model_validate(q) for q in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch("/{bank_id}", response_model=QuestionBankResponse)
async def update_bank(
    bank_id: int,
    request: QuestionBankUpdateRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> QuestionBankResponse:
    bank = await QuestionBankService(db).update(bank_id, request, org_id)
    return QuestionBankResponse.model_validate(bank)


@router.delete("/{bank_id}", response_model=DeletedResponse)
async def delete_bank(
    bank_id: int,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> DeletedResponse:
    await QuestionBankService(db).soft_delete(bank_id, org_id)
    logger.info("question_bank_deleted", bank_id=bank_id, organization_id=org_id)
    return DeletedResponse(id=bank_id)


@router.post("/{bank_id}/links", response_model=OrganizationLinkResponse)
async def link_bank_organization(
    bank_id: int,
    request: OrganizationLinkRequest,
    org_id: int = Depends(org_context()),
    db: AsyncSession = Depends(get_db),
) -> OrganizationLinkResponse:
    link = await QuestionBankService(db).link_organization(
        bank_id, request.target_organization_id, request.access_level, org_id
    )
    return OrganizationLinkResponse.model_validate(link)
