"""Pydantic schemas for responses, progress and the respondent projection."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.question_bank import QuestionResponse
from app.schemas.session import AssignmentResponse, SessionResponse


class ResponseUpsertRequest(BaseModel):
    """One answer; the value channel used depends on the question type."""

    assignment_id: int = Field(..., gt=0)
    session_id: int = Field(..., gt=0)
    template_question_id: int = Field(..., gt=0)
    scale_value: Optional[int] = None
    option_value: Optional[str] = None
    option_values: Optional[List[str]] = None
    text_value: Optional[str] = None


class ResponseBulkUpsertRequest(BaseModel):
    items: List[ResponseUpsertRequest] = Field(default_factory=list)


class ResponseRead(BaseModel):
    id: int
    assignment_id: int
    session_id: int
    template_question_id: int
    scale_value: Optional[int] = None
    option_value: Optional[str] = None
    option_values: List[str] = Field(default_factory=list)
    text_value: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ResponseListResponse(BaseModel):
    items: List[ResponseRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class ResponseBulkUpsertResponse(BaseModel):
    count: int
    items: List[ResponseRead] = Field(default_factory=list)


class AssignmentProgressResponse(BaseModel):
    assignment_id: int
    total: int
    answered: int
    percent: int
    status: str
    context: Dict[str, Any] = Field(default_factory=dict)


class UserProgressResponse(BaseModel):
    session_id: int
    user_id: int
    perspective: Optional[str] = None
    subject_user_id: Optional[int] = None
    assignments: int = 0
    total: int
    answered: int
    percent: int
    status: str


class PerspectiveQuestion(BaseModel):
    template_question_id: int
    question_id: int
    required: bool
    order: int
    question: QuestionResponse


class PerspectiveSection(BaseModel):
    id: int
    title: str
    order: int
    questions: List[PerspectiveQuestion] = Field(default_factory=list)


class PerspectiveQuestionsResponse(BaseModel):
    """Ordered questions a respondent answers for one assignment."""

    session: SessionResponse
    assignment: AssignmentResponse
    sections: List[PerspectiveSection] = Field(default_factory=list)
    responses: List[ResponseRead] = Field(default_factory=list)
