"""Enumerations shared by models, schemas and services."""
from enum import Enum


class QuestionType(str, Enum):
    SCALE = "SCALE"
    TEXT = "TEXT"
    MULTI_CHOICE = "MULTI_CHOICE"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    BOOLEAN = "BOOLEAN"


class Perspective(str, Enum):
    """Viewpoint a respondent answers from."""

    SELF = "SELF"
    FACILITATOR = "FACILITATOR"
    PEER = "PEER"
    MANAGER = "MANAGER"
    SYSTEM = "SYSTEM"


class TemplateState(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class SessionState(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AccessLevel(str, Enum):
    """Graded access an organization holds over a shared resource."""

    USE = "USE"
    CLONE = "CLONE"
    EDIT = "EDIT"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        # CLONE grants read access only
        return {"USE": 1, "CLONE": 1, "EDIT": 2, "ADMIN": 3}[self.value]

    def satisfies(self, required: "AccessLevel") -> bool:
        return self.rank >= AccessLevel(required).rank


class OrgRole(str, Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class ProgressStatus(str, Enum):
    NO_QUESTIONS = "NO_QUESTIONS"
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    NOT_ASSIGNED = "NOT_ASSIGNED"


PERSPECTIVE_VALUES = [p.value for p in Perspective]
