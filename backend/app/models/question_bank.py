"""Reusable content models - question banks, option sets and questions."""
from typing import List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, SoftDeleteMixin

ACCESS_LEVEL_CHECK = "access_level IN ('USE', 'CLONE', 'EDIT', 'ADMIN')"


class QuestionBank(SoftDeleteMixin, BaseModel):
    """Library of questions owned by one organization and shareable."""

    __tablename__ = "question_banks"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )

    org_links: Mapped[List["QuestionBankOrgLink"]] = relationship(
        "QuestionBankOrgLink", back_populates="bank", cascade="all, delete-orphan"
    )
    questions: Mapped[List["Question"]] = relationship("Question", back_populates="bank")


class QuestionBankOrgLink(BaseModel):
    __tablename__ = "question_bank_org_links"

    bank_id: Mapped[int] = mapped_column(
        ForeignKey("question_banks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_level: Mapped[str] = mapped_column(String(10), default="USE", nullable=False)

    bank: Mapped["QuestionBank"] = relationship("QuestionBank", back_populates="org_links")

    __table_args__ = (
        UniqueConstraint("bank_id", "organization_id", name="uq_bank_org_link"),
        CheckConstraint(ACCESS_LEVEL_CHECK, name="ck_bank_link_access_level"),
    )


class OptionSet(SoftDeleteMixin, BaseModel):
    """Reusable ordered list of answer options."""

    __tablename__ = "option_sets"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_by_organization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )

    options: Mapped[List["OptionSetOption"]] = relationship(
        "OptionSetOption",
        back_populates="option_set",
        cascade="all, delete-orphan",
        order_by="OptionSetOption.order",
    )
    org_links: Mapped[List["OptionSetOrgLink"]] = relationship(
        "OptionSetOrgLink", back_populates="option_set", cascade="all, delete-orphan"
    )


class OptionSetOption(BaseModel):
    __tablename__ = "option_set_options"

    option_set_id: Mapped[int] = mapped_column(
        ForeignKey("option_sets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    option_set: Mapped["OptionSet"] = relationship("OptionSet", back_populates="options")

    __table_args__ = (UniqueConstraint("option_set_id", "value", name="uq_option_set_option_value"),)


class OptionSetOrgLink(BaseModel):
    __tablename__ = "option_set_org_links"

    option_set_id: Mapped[int] = mapped_column(
        ForeignKey("option_sets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_level: Mapped[str] = mapped_column(String(10), default="USE", nullable=False)

    option_set: Mapped["OptionSet"] = relationship("OptionSet", back_populates="org_links")

    __table_args__ = (
        UniqueConstraint("option_set_id", "organization_id", name="uq_option_set_org_link"),
        CheckConstraint(ACCESS_LEVEL_CHECK, name="ck_option_set_link_access_level"),
    )


class Question(SoftDeleteMixin, BaseModel):
    """A typed question; options come from an option set or inline rows."""

    __tablename__ = "questions"

    bank_id: Mapped[int] = mapped_column(
        ForeignKey("question_banks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    option_set_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("option_sets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    min_scale: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_scale: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    bank: Mapped["QuestionBank"] = relationship("QuestionBank", back_populates="questions")
    option_set: Mapped[Optional["OptionSet"]] = relationship("OptionSet")
    options: Mapped[List["QuestionOption"]] = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.order",
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('SCALE', 'TEXT', 'MULTI_CHOICE', 'SINGLE_CHOICE', 'BOOLEAN')",
            name="ck_question_type",
        ),
    )

    def option_values(self) -> List[str]:
        """Valid option values: attached option set first, else inline options."""
        if self.option_set is not None:
            return [o.value for o in self.option_set.options]
        return [o.value for o in self.options]

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, type={self.type})>"


class QuestionOption(BaseModel):
    __tablename__ = "question_options"

    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    question: Mapped["Question"] = relationship("Question", back_populates="options")
