"""Session models - scheduled sessions, assignments and responses."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, SoftDeleteMixin
from app.models.organization import Organization, User
from app.models.template import AssessmentTemplate, TemplateQuestion


class AssessmentSession(SoftDeleteMixin, BaseModel):
    """One scheduling instance of a template inside an organization."""

    __tablename__ = "assessment_sessions"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    team_scope_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    state: Mapped[str] = mapped_column(String(20), default="SCHEDULED", nullable=False, index=True)
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="sessions")
    template: Mapped["AssessmentTemplate"] = relationship("AssessmentTemplate")
    assignments: Mapped[List["AssessmentAssignment"]] = relationship(
        "AssessmentAssignment", back_populates="session"
    )

    __table_args__ = (
        CheckConstraint(
            "state IN ('SCHEDULED', 'IN_PROGRESS', 'ANALYZING', 'COMPLETED', 'CANCELLED')",
            name="ck_session_state",
        ),
    )

    def __repr__(self) -> str:
        return f"<AssessmentSession(id={self.id}, state={self.state})>"


class AssessmentAssignment(SoftDeleteMixin, BaseModel):
    """Unit of work: respondent answers about subject from a perspective."""

    __tablename__ = "assessment_assignments"

    session_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    respondent_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    perspective: Mapped[str] = mapped_column(String(20), default="SELF", nullable=False)

    session: Mapped["AssessmentSession"] = relationship("AssessmentSession", back_populates="assignments")
    respondent: Mapped["User"] = relationship("User", foreign_keys=[respondent_user_id])
    subject: Mapped["User"] = relationship("User", foreign_keys=[subject_user_id])
    responses: Mapped[List["AssessmentResponse"]] = relationship(
        "AssessmentResponse", back_populates="assignment", cascade="all, delete-orphan"
    )

    # Store-level authority for the assignment tuple
    __table_args__ = (
        UniqueConstraint(
            "session_id",
            "respondent_user_id",
            "subject_user_id",
            "perspective",
            name="uq_assignment_tuple",
        ),
        CheckConstraint(
            "perspective IN ('SELF', 'FACILITATOR', 'PEER', 'MANAGER', 'SYSTEM')",
            name="ck_assignment_perspective",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AssessmentAssignment(session={self.session_id}, respondent={self.respondent_user_id}, "
            f"subject={self.subject_user_id}, perspective={self.perspective})>"
        )


class AssessmentResponse(BaseModel):
    """One answer per (assignment, template question); exactly one value channel set."""

    __tablename__ = "assessment_responses"

    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_question_id: Mapped[int] = mapped_column(
        ForeignKey("template_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    scale_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    option_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    option_values: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    text_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assignment: Mapped["AssessmentAssignment"] = relationship(
        "AssessmentAssignment", back_populates="responses"
    )
    template_question: Mapped["TemplateQuestion"] = relationship("TemplateQuestion")

    __table_args__ = (
        UniqueConstraint("assignment_id", "template_question_id", name="uq_response_assignment_question"),
    )
