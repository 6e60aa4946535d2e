"""Pydantic schemas for templates, sections and template questions."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.question_bank import QuestionResponse


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    state: Optional[str] = Field(None, pattern="^(DRAFT|ACTIVE|CLOSED|ARCHIVED)$")
    meta: Optional[Dict[str, Any]] = None


class TemplateResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    state: str
    version: int
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_by_organization_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TemplateListResponse(BaseModel):
    items: List[TemplateResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class SectionCreateRequest(BaseModel):
    template_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)


class SectionUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)


class SectionReorderRequest(BaseModel):
    section_ids: List[int]


class SectionResponse(BaseModel):
    id: int
    template_id: int
    title: str
    order: int

    model_config = {"from_attributes": True}


class TemplateQuestionCreateRequest(BaseModel):
    section_id: int = Field(..., gt=0)
    question_id: int = Field(..., gt=0)
    order: Optional[int] = Field(None, ge=0)
    perspectives: Optional[List[str]] = None
    required: Optional[bool] = None


class TemplateQuestionUpdateRequest(BaseModel):
    order: Optional[int] = Field(None, ge=0)
    perspectives: Optional[List[str]] = None
    required: Optional[bool] = None


class TemplateQuestionItem(BaseModel):
    """One link in a bulk replacement of a section's questions."""

    question_id: int = Field(..., gt=0)
    order: Optional[int] = Field(None, ge=0)
    perspectives: Optional[List[str]] = None
    required: Optional[bool] = None


class TemplateQuestionBulkSetRequest(BaseModel):
    items: List[TemplateQuestionItem] = Field(default_factory=list)


class TemplateQuestionResponse(BaseModel):
    id: int
    section_id: int
    question_id: int
    order: int
    perspectives: List[str] = Field(default_factory=list)
    required: bool

    model_config = {"from_attributes": True}


class TemplateQuestionDetail(TemplateQuestionResponse):
    question: QuestionResponse


class SectionDetail(SectionResponse):
    questions: List[TemplateQuestionDetail] = Field(default_factory=list)

    @classmethod
    def from_section(cls, section) -> "SectionDetail":
        """Build from a section loaded with ``live_questions``."""
        return cls(
            id=section.id,
            template_id=section.template_id,
            title=section.title,
            order=section.order,
            questions=[TemplateQuestionDetail.model_validate(link) for link in section.live_questions],
        )


class TemplateFullResponse(TemplateResponse):
    sections: List[SectionDetail] = Field(default_factory=list)

