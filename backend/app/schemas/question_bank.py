"""Pydantic schemas for question banks, option sets and questions."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class OptionInput(BaseModel):
    value: str = Field(..., min_length=1, max_length=255)
    label: str = Field(..., min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)
    meta: Dict[str, Any] = Field(default_factory=dict)


class OptionResponse(BaseModel):
    id: int
    value: str
    label: str
    order: int

    model_config = {"from_attributes": True}


class QuestionBankCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class QuestionBankUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class QuestionBankResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_system: bool = False
    created_by_organization_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class QuestionBankListResponse(BaseModel):
    items: List[QuestionBankResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class OptionSetCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    options: List[OptionInput] = Field(default_factory=list)


class OptionSetUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    options: Optional[List[OptionInput]] = None


class OptionSetOptionsRequest(BaseModel):
    options: List[OptionInput] = Field(default_factory=list)


class OptionUpdateRequest(BaseModel):
    value: Optional[str] = Field(None, min_length=1, max_length=255)
    label: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)
    meta: Optional[Dict[str, Any]] = None


class OptionSetResponse(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    is_system: bool = False
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_by_organization_id: Optional[int] = None
    options: List[OptionResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class OptionSetListResponse(BaseModel):
    items: List[OptionSetResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int


class QuestionCreateRequest(BaseModel):
    bank_id: int = Field(..., gt=0)
    code: Optional[str] = Field(None, max_length=100)
    text: str = Field(..., min_length=1)
    type: str = Field(..., pattern="^(SCALE|TEXT|MULTI_CHOICE|SINGLE_CHOICE|BOOLEAN)$")
    option_set_id: Optional[int] = Field(None, gt=0)
    min_scale: Optional[int] = None
    max_scale: Optional[int] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    options: Optional[List[OptionInput]] = None

    @model_validator(mode="after")
    def check_scale_range(self):
        if self.min_scale is not None and self.max_scale is not None and self.min_scale > self.max_scale:
            raise ValueError("min_scale must not exceed max_scale")
        return self


class QuestionUpdateRequest(BaseModel):
    code: Optional[str] = Field(None, max_length=100)
    text: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, pattern="^(SCALE|TEXT|MULTI_CHOICE|SINGLE_CHOICE|BOOLEAN)$")
    option_set_id: Optional[int] = Field(None, gt=0)
    min_scale: Optional[int] = None
    max_scale: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None
    options: Optional[List[OptionInput]] = None


class QuestionResponse(BaseModel):
    id: int
    bank_id: int
    code: Optional[str] = None
    text: str
    type: str
    option_set_id: Optional[int] = None
    min_scale: Optional[int] = None
    max_scale: Optional[int] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    options: List[OptionResponse] = Field(default_factory=list)
    option_set: Optional[OptionSetResponse] = None

    model_config = {"from_attributes": True}


class QuestionListResponse(BaseModel):
    items: List[QuestionResponse] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
