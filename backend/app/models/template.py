"""Template graph models - templates, sections and template-question links."""
from typing import List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, SoftDeleteMixin
from app.models.question_bank import ACCESS_LEVEL_CHECK, Question


class AssessmentTemplate(SoftDeleteMixin, BaseModel):
    """Named, slugged container of ordered sections."""

    __tablename__ = "assessment_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(20), default="DRAFT", nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_by_organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )

    sections: Mapped[List["TemplateSection"]] = relationship(
        "TemplateSection", back_populates="template", order_by="TemplateSection.order"
    )
    org_links: Mapped[List["TemplateOrgLink"]] = relationship(
        "TemplateOrgLink", back_populates="template", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "state IN ('DRAFT', 'ACTIVE', 'CLOSED', 'ARCHIVED')",
            name="ck_template_state",
        ),
    )

    def __repr__(self) -> str:
        return f"<AssessmentTemplate(slug={self.slug}, state={self.state})>"


class TemplateOrgLink(BaseModel):
    """Access level an organization holds over a template."""

    __tablename__ = "template_org_links"

    template_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_level: Mapped[str] = mapped_column(String(10), default="USE", nullable=False)

    template: Mapped["AssessmentTemplate"] = relationship("AssessmentTemplate", back_populates="org_links")

    __table_args__ = (
        UniqueConstraint("template_id", "organization_id", name="uq_template_org_link"),
        CheckConstraint(ACCESS_LEVEL_CHECK, name="ck_template_link_access_level"),
    )


class TemplateSection(SoftDeleteMixin, BaseModel):
    __tablename__ = "template_sections"

    template_id: Mapped[int] = mapped_column(
        ForeignKey("assessment_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    template: Mapped["AssessmentTemplate"] = relationship("AssessmentTemplate", back_populates="sections")
    questions: Mapped[List["TemplateQuestion"]] = relationship(
        "TemplateQuestion", back_populates="section", order_by="TemplateQuestion.order"
    )


class TemplateQuestion(SoftDeleteMixin, BaseModel):
    """Binds a question into a section with order, perspectives and required flag.

    An empty ``perspectives`` list means every perspective must answer it.
    """

    __tablename__ = "template_questions"

    section_id: Mapped[int] = mapped_column(
        ForeignKey("template_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    perspectives: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    section: Mapped["TemplateSection"] = relationship("TemplateSection", back_populates="questions")
    question: Mapped["Question"] = relationship("Question")

    def applies_to(self, perspective: str) -> bool:
        if not self.perspectives:
            return True
        return str(perspective) in self.perspectives
