"""Organization models - tenants, teams, users and memberships."""
from typing import TYPE_CHECKING, List, Optional

from pydantic import AliasChoices, BaseModel as PydanticBaseModel, Field, field_validator
from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, SoftDeleteMixin

if TYPE_CHECKING:
    from app.models.session import AssessmentSession


class Organization(SoftDeleteMixin, BaseModel):
    """Tenant boundary owning memberships, templates and sessions."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, unique=True)

    # Relationships
    memberships: Mapped[List["OrganizationMembership"]] = relationship(
        "OrganizationMembership", back_populates="organization", cascade="all, delete-orphan"
    )
    teams: Mapped[List["Team"]] = relationship(
        "Team", back_populates="organization", cascade="all, delete-orphan"
    )
    sessions: Mapped[List["AssessmentSession"]] = relationship(
        "AssessmentSession", back_populates="organization"
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"


class Team(SoftDeleteMixin, BaseModel):
    """Optional scope inside an organization."""

    __tablename__ = "teams"

    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    organization: Mapped["Organization"] = relationship("Organization", back_populates="teams")


class User(SoftDeleteMixin, BaseModel):
    """Platform user acting as respondent and/or subject."""

    __tablename__ = "users"

    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    phone_normalized: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    memberships: Mapped[List["OrganizationMembership"]] = relationship(
        "OrganizationMembership", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class OrganizationMembership(BaseModel):
    """(user, organization) pair with a set of organization roles."""

    __tablename__ = "organization_memberships"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    roles: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="memberships")
    organization: Mapped["Organization"] = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_membership_user_org"),
    )


# Pydantic models for the authenticated caller (not stored in DB)
class OrgMembershipClaim(PydanticBaseModel):
    """One organization membership as carried in the actor's role claims.

    Legacy tokens carry a single ``role``; newer ones carry ``roles``. Both
    are accepted and exposed through :attr:`role_set`.
    """

    org_id: int = Field(validation_alias=AliasChoices("org_id", "orgId", "organization_id", "organizationId"))
    role: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    @field_validator("org_id", mode="before")
    @classmethod
    def _coerce_org_id(cls, value):
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value

    @property
    def role_set(self) -> set:
        found = set(self.roles)
        if self.role:
            found.add(self.role)
        return found


class Actor(PydanticBaseModel):
    """Authenticated caller passed explicitly into every core operation."""

    id: int
    global_roles: List[str] = Field(default_factory=list)
    org_memberships: List[OrgMembershipClaim] = Field(default_factory=list)

    def has_global_role(self, role: str) -> bool:
        return role in self.global_roles

    def membership_for(self, org_id: int) -> Optional[OrgMembershipClaim]:
        for membership in self.org_memberships:
            if membership.org_id == org_id:
                return membership
        return None

    @property
    def organization_ids(self) -> List[int]:
        return sorted({m.org_id for m in self.org_memberships})
