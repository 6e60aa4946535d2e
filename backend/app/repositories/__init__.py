"""Repository layer for data access."""

from .assignment import AssignmentRepository
from .base import BaseRepository
from .organization import MembershipRepository, OrganizationRepository, TeamRepository, UserRepository
from .question_bank import OptionSetRepository, QuestionBankRepository, QuestionRepository
from .response import ResponseRepository
from .session import SessionRepository
from .template import SectionRepository, TemplateQuestionRepository, TemplateRepository

__all__ = [
    "BaseRepository",
    "OrganizationRepository",
    "TeamRepository",
    "UserRepository",
    "MembershipRepository",
    "QuestionBankRepository",
    "OptionSetRepository",
    "QuestionRepository",
    "TemplateRepository",
    "SectionRepository",
    "TemplateQuestionRepository",
    "SessionRepository",
    "AssignmentRepository",
    "ResponseRepository",
]
