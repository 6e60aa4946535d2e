"""Pydantic schemas for API requests and responses."""

from .common import DeletedResponse, ErrorResponse, OrganizationLinkRequest, OrganizationLinkResponse
from .question_bank import (
    OptionInput,
    OptionResponse,
    OptionSetCreateRequest,
    OptionSetListResponse,
    OptionSetOptionsRequest,
    OptionSetResponse,
    OptionSetUpdateRequest,
    OptionUpdateRequest,
    QuestionBankCreateRequest,
    QuestionBankListResponse,
    QuestionBankResponse,
    QuestionBankUpdateRequest,
    QuestionCreateRequest,
    QuestionListResponse,
    QuestionResponse,
    QuestionUpdateRequest,
)
from .response import (
    AssignmentProgressResponse,
    PerspectiveQuestionsResponse,
    ResponseBulkUpsertRequest,
    ResponseBulkUpsertResponse,
    ResponseListResponse,
    ResponseRead,
    ResponseUpsertRequest,
    UserProgressResponse,
)
from .session import (
    AssignmentBulkRequest,
    AssignmentCreateRequest,
    AssignmentDetail,
    AssignmentResponse,
    AssignmentUpdateRequest,
    BulkAssignResponse,
    SessionCreateRequest,
    SessionFullResponse,
    SessionListResponse,
    SessionResponse,
    SessionUpdateRequest,
    UserSessionListResponse,
    UserSessionResponse,
)
from .template import (
    SectionCreateRequest,
    SectionDetail,
    SectionReorderRequest,
    SectionResponse,
    SectionUpdateRequest,
    TemplateCreateRequest,
    TemplateFullResponse,
    TemplateListResponse,
    TemplateQuestionBulkSetRequest,
    TemplateQuestionCreateRequest,
    TemplateQuestionItem,
    TemplateQuestionResponse,
    TemplateQuestionUpdateRequest,
    TemplateResponse,
    TemplateUpdateRequest,
)
