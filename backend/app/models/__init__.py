"""Database models.

Importing this package registers every table on ``Base.metadata``.
"""
from app.models.base import Base, BaseModel, SoftDeleteMixin
from app.models.organization import (
    Actor,
    OrganizationMembership,
    Organization,
    OrgMembershipClaim,
    Team,
    User,
)
from app.models.question_bank import (
    OptionSet,
    OptionSetOption,
    OptionSetOrgLink,
    Question,
    QuestionBank,
    QuestionBankOrgLink,
    QuestionOption,
)
from app.models.template import AssessmentTemplate, TemplateOrgLink, TemplateQuestion, TemplateSection
from app.models.session import AssessmentAssignment, AssessmentResponse, AssessmentSession

__all__ = [
    "Base",
    "BaseModel",
    "SoftDeleteMixin",
    "Actor",
    "OrgMembershipClaim",
    "Organization",
    "OrganizationMembership",
    "Team",
    "User",
    "QuestionBank",
    "QuestionBankOrgLink",
    "OptionSet",
    "OptionSetOption",
    "OptionSetOrgLink",
    "Question",
    "QuestionOption",
    "AssessmentTemplate",
    "TemplateOrgLink",
    "TemplateSection",
    "TemplateQuestion",
    "AssessmentSession",
    "AssessmentAssignment",
    "AssessmentResponse",
]
