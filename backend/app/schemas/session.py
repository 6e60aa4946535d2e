"""Pydantic schemas for sessions and assignments."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.template import SectionDetail, TemplateResponse


class SessionCreateRequest(BaseModel):
    organization_id: int = Field(..., gt=0)
    template_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    team_scope_id: Optional[int] = Field(None, gt=0)
    meta: Dict[str, Any] = Field(default_factory=dict)


class SessionUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    state: Optional[str] = Field(
        None, pattern="^(SCHEDULED|IN_PROGRESS|ANALYZING|COMPLETED|CANCELLED)$"
    )
    team_scope_id: Optional[int] = Field(None, gt=0)
    meta: Optional[Dict[str, Any]] = None
    force: bool = False


class SessionResponse(BaseModel):
    id: int
    organization_id: int
    template_id: int
    team_scope_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    state: str
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    items: List[SessionResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class UserSessionResponse(SessionResponse):
    """Session seen from one respondent."""

    assigned_at: Optional[datetime] = None
    perspectives: List[str] = Field(default_factory=list)


class UserSessionListResponse(BaseModel):
    items: List[UserSessionResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class UserBrief(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone_normalized: Optional[str] = None

    model_config = {"from_attributes": True}


class AssignmentCreateRequest(BaseModel):
    session_id: int = Field(..., gt=0)
    respondent_user_id: int = Field(..., gt=0)
    subject_user_id: Optional[int] = Field(None, gt=0)
    perspective: Optional[str] = None


class AssignmentBulkRequest(BaseModel):
    """Mode A: ``respondent_user_id`` + ``subject_user_ids`` (non-SELF).
    Mode B: ``user_ids`` each self-assigned (SELF)."""

    session_id: int = Field(..., gt=0)
    perspective: Optional[str] = None
    respondent_user_id: Optional[int] = Field(None, gt=0)
    subject_user_ids: Optional[List[int]] = None
    user_ids: Optional[List[int]] = None


class AssignmentUpdateRequest(BaseModel):
    perspective: Optional[str] = None
    subject_user_id: Optional[int] = Field(None, gt=0)


class AssignmentResponse(BaseModel):
    id: int
    session_id: int
    respondent_user_id: int
    subject_user_id: int
    perspective: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignmentDetail(AssignmentResponse):
    respondent: Optional[UserBrief] = None
    subject: Optional[UserBrief] = None


class BulkAssignResponse(BaseModel):
    created: int


class SessionFullResponse(SessionResponse):
    template: TemplateResponse
    sections: List[SectionDetail] = Field(default_factory=list)
    assignments: List[AssignmentResponse] = Field(default_factory=list)
