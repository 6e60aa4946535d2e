"""Access resolution: organization context and per-resource access levels.

The organization id of an operation is resolved by an ordered list of
strategies. Source strategies read a raw value from the request parts
(params, query, body, headers); inference strategies derive the id from the
actor's memberships or from a referenced resource. The first strategy that
yields a value wins.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    InsufficientAccessLevelError,
    MissingOrganizationRoleError,
    NotFoundError,
    NotOrganizationMemberError,
    ResourceNotLinkedError,
    ValidationError,
)
from app.models.enums import AccessLevel
from app.models.organization import Actor
from app.repositories.question_bank import OptionSetRepository, QuestionBankRepository
from app.repositories.session import SessionRepository
from app.repositories.template import SectionRepository, TemplateQuestionRepository, TemplateRepository

logger = logging.getLogger(__name__)

ORG_ID_KEYS = ("orgId", "organizationId", "org_id", "organization_id")


@dataclass
class OperationContext:
    """Inbound operation as seen by the access layer.

    ``resource_kind`` names what a bare ``id`` path parameter refers to
    (``template``, ``section``, ``template_question``, ``session``...).
    Header keys are compared case-insensitively.
    """

    actor: Actor
    params: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    resource_kind: Optional[str] = None

    def header(self, key: str) -> Any:
        wanted = key.lower()
        for name, value in self.headers.items():
            if name.lower() == wanted:
                return value
        return None


@dataclass
class OrgContextSources:
    """Explicit source keys; with ``strict`` no fallback is attempted."""

    param_key: Optional[str] = None
    query_key: Optional[str] = None
    body_key: Optional[str] = None
    header_key: Optional[str] = None
    strict: bool = False


@dataclass
class OrgContextOptions:
    optional: bool = False
    sources: Optional[OrgContextSources] = None
    require_roles: List[str] = field(default_factory=list)
    require_mode: str = "any"


def parse_org_id(raw: Any) -> int:
    """Coerce a raw organization id to a positive int or raise ValidationError."""
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    if isinstance(raw, bool):
        raise ValidationError("Invalid organization id", field="org_id")
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw.isdigit():
            raise ValidationError("Invalid organization id", field="org_id")
        raw = int(raw)
    if not isinstance(raw, int) or raw <= 0:
        raise ValidationError("Invalid organization id", field="org_id")
    return raw


def _as_int(value: Any) -> Optional[int]:
    """Best-effort int for resource ids found in params or body."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _present(value: Any) -> bool:
    return value not in (None, "", [])


# ---------------------------------------------------------------------------
# Source strategies
# ---------------------------------------------------------------------------

class OrgIdSource:
    """Reads a raw organization id from one place in the request."""

    part = ""

    def __init__(self, key: str):
        self.key = key

    def read(self, ctx: OperationContext) -> Any:
        return getattr(ctx, self.part).get(self.key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class ParamSource(OrgIdSource):
    part = "params"


class QuerySource(OrgIdSource):
    part = "query"


class BodySource(OrgIdSource):
    part = "body"


class HeaderSource(OrgIdSource):
    def read(self, ctx: OperationContext) -> Any:
        return ctx.header(self.key)


def heuristic_sources() -> List[OrgIdSource]:
    """Conventional keys tried when no explicit source matched."""
    ordered: List[OrgIdSource] = []
    for source_type in (ParamSource, QuerySource, BodySource):
        ordered.extend(source_type(key) for key in ORG_ID_KEYS)
    ordered.append(HeaderSource(settings.ORG_ID_HEADER))
    return ordered


def build_sources(sources: Optional[OrgContextSources]) -> List[OrgIdSource]:
    """Explicit overrides first, then heuristics unless ``strict``."""
    ordered: List[OrgIdSource] = []
    if sources:
        if sources.param_key:
            ordered.append(ParamSource(sources.param_key))
        if sources.query_key:
            ordered.append(QuerySource(sources.query_key))
        if sources.body_key:
            ordered.append(BodySource(sources.body_key))
        if sources.header_key:
            ordered.append(HeaderSource(sources.header_key))
        if sources.strict:
            return ordered
    return ordered + heuristic_sources()


# ---------------------------------------------------------------------------
# Inference strategies
# ---------------------------------------------------------------------------

class SingleMembershipInference:
    """The actor belongs to exactly one organization."""

    async def infer(self, ctx: OperationContext, db: AsyncSession) -> Optional[int]:
        org_ids = ctx.actor.organization_ids
        if len(org_ids) == 1:
            return org_ids[0]
        return None


class SessionOwnerInference:
    """Owning organization of a session referenced in the path."""

    async def infer(self, ctx: OperationContext, db: AsyncSession) -> Optional[int]:
        session_id = _as_int(ctx.params.get("session_id"))
        if session_id is None and ctx.resource_kind == "session":
            session_id = _as_int(ctx.params.get("id"))
        if session_id is None:
            return None
        return await SessionRepository(db).organization_id_for(session_id)


class TemplateOwnerInference:
    """Creating organization of a template referenced in the path."""

    async def infer(self, ctx: OperationContext, db: AsyncSession) -> Optional[int]:
        template_id = _as_int(ctx.params.get("template_id"))
        if template_id is None and ctx.resource_kind == "template":
            template_id = _as_int(ctx.params.get("id"))
        if template_id is None:
            return None
        template = await TemplateRepository(db).get_by_id(template_id)
        return template.created_by_organization_id if template else None


def default_inferences() -> list:
    return [SingleMembershipInference(), SessionOwnerInference(), TemplateOwnerInference()]


class OrgContextResolver:
    """Resolves and authorizes the organization of an operation."""

    def __init__(
        self,
        db: AsyncSession,
        inferences: Optional[Sequence] = None,
    ):
        self.db = db
        self.inferences = list(inferences) if inferences is not None else default_inferences()

    async def resolve_org_id(self, ctx: OperationContext, options: OrgContextOptions) -> Optional[int]:
        for source in build_sources(options.sources):
            raw = source.read(ctx)
            if _present(raw):
                logger.debug(f"[ACCESS] Organization id from {source!r}")
                return parse_org_id(raw)

        if options.sources and options.sources.strict:
            return None

        for strategy in self.inferences:
            inferred = await strategy.infer(ctx, self.db)
            if inferred is not None:
                logger.debug(f"[ACCESS] Organization id inferred by {type(strategy).__name__}")
                return parse_org_id(inferred)
        return None

    async def resolve(self, ctx: OperationContext, options: Optional[OrgContextOptions] = None) -> Optional[int]:
        """Return the authorized organization id, or None for optional routes without one."""
        options = options or OrgContextOptions()
        org_id = await self.resolve_org_id(ctx, options)
        if org_id is None:
            if options.optional:
                return None
            raise ValidationError("Missing organization identifier (org_id)", field="org_id")
        authorize_membership(ctx.actor, org_id, options.require_roles, options.require_mode)
        return org_id


def authorize_membership(
    actor: Actor,
    org_id: int,
    require_roles: Optional[Sequence[str]] = None,
    require_mode: str = "any",
) -> None:
    """Membership and role check; a super admin passes unconditionally."""
    if actor.has_global_role(settings.SUPER_ADMIN_ROLE):
        return

    membership = actor.membership_for(org_id)
    if membership is None:
        logger.warning(f"[ACCESS] Actor {actor.id} is not a member of organization {org_id}")
        raise NotOrganizationMemberError(
            "You are not a member of this organization", details={"organization_id": org_id}
        )

    if not require_roles:
        return
    held = membership.role_set
    wanted = set(require_roles)
    if require_mode == "all":
        allowed = wanted.issubset(held)
    else:
        allowed = bool(wanted & held)
    if not allowed:
        raise MissingOrganizationRoleError(
            "Missing required organization role",
            details={"required": sorted(wanted), "mode": require_mode},
        )


class ResourceAccessService:
    """Access level checks for shareable resources.

    The creating organization always holds ADMIN. Any other organization
    needs an explicit link whose level satisfies the requirement.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.template_repository = TemplateRepository(db)
        self.bank_repository = QuestionBankRepository(db)
        self.option_set_repository = OptionSetRepository(db)
        self.session_repository = SessionRepository(db)

    async def _check(self, repository, label: str, resource_id: int, org_id: int, required) -> AccessLevel:
        required = AccessLevel(required)
        resource = await repository.get_active(resource_id)
        if not resource:
            raise NotFoundError(f"{label} not found")

        if resource.created_by_organization_id == org_id:
            return AccessLevel.ADMIN

        link = await repository.get_org_link(resource_id, org_id)
        if not link:
            logger.info(f"[ACCESS] {label} {resource_id} not linked to organization {org_id}")
            raise ResourceNotLinkedError(
                f"{label} not linked to organization",
                details={"resource_id": resource_id, "organization_id": org_id},
            )

        level = AccessLevel(link.access_level)
        if not level.satisfies(required):
            raise InsufficientAccessLevelError(
                f"Insufficient {label.lower()} access level",
                details={"required": required.value, "granted": level.value},
            )
        return level

    async def check_template(
        self,
        template_id: int,
        org_id: int,
        required=AccessLevel.USE,
        actor: Optional[Actor] = None,
    ) -> AccessLevel:
        if actor is not None and _has_template_bypass(actor):
            if not await self.template_repository.get_active(template_id):
                raise NotFoundError("Template not found")
            return AccessLevel.ADMIN
        return await self._check(self.template_repository, "Template", template_id, org_id, required)

    async def check_session(self, session_id: int, org_id: int, actor: Optional[Actor] = None) -> None:
        """Sessions are never shared; only the owning organization may act on one."""
        owner = await self.session_repository.organization_id_for(session_id)
        if owner is None:
            raise NotFoundError("Session not found")
        if actor is not None and actor.has_global_role(settings.SUPER_ADMIN_ROLE):
            return
        if owner != org_id:
            logger.info(f"[ACCESS] Session {session_id} does not belong to organization {org_id}")
            raise ResourceNotLinkedError(
                "Session not linked to organization",
                details={"resource_id": session_id, "organization_id": org_id},
            )

    async def check_bank(self, bank_id: int, org_id: int, required=AccessLevel.USE) -> AccessLevel:
        return await self._check(self.bank_repository, "Question bank", bank_id, org_id, required)

    async def check_option_set(self, option_set_id: int, org_id: int, required=AccessLevel.USE) -> AccessLevel:
        return await self._check(self.option_set_repository, "Option set", option_set_id, org_id, required)


def _has_template_bypass(actor: Actor) -> bool:
    privileged = [settings.SUPER_ADMIN_ROLE] + list(settings.PRIVILEGED_TEMPLATE_ROLES)
    return any(actor.has_global_role(role) for role in privileged)


class TemplateIdResolver:
    """Finds the template an operation targets.

    Sections and template-question links do not carry the template id, so
    those are walked up to their owning template.
    """

    UNRESOLVED_MESSAGE = (
        "Unable to resolve template id (ensure you are sending template-question "
        "link id, not raw question_id or section_id)"
    )

    def __init__(self, db: AsyncSession):
        self.db = db
        self.section_repository = SectionRepository(db)
        self.template_question_repository = TemplateQuestionRepository(db)

    async def _from_section(self, section_id: int) -> int:
        template_id = await self.section_repository.template_id_for(section_id)
        if template_id is None:
            raise NotFoundError("Section not found", details={"section_id": section_id})
        return template_id

    async def _from_link(self, link_id: int) -> int:
        template_id = await self.template_question_repository.template_id_for(link_id)
        if template_id is None:
            raise NotFoundError("Template question not found", details={"template_question_id": link_id})
        return template_id

    async def resolve(self, ctx: OperationContext) -> int:
        """Resolve from the most specific identifier present.

        A nested resource id (link, then section) always wins over a plain
        template id, and path values win over body values.
        """
        params, body = ctx.params, ctx.body or {}
        path_id = _as_int(params.get("id"))

        if path_id is not None and ctx.resource_kind == "template_question":
            return await self._from_link(path_id)
        if path_id is not None and ctx.resource_kind == "section":
            return await self._from_section(path_id)
        if path_id is not None and ctx.resource_kind == "template":
            return path_id

        section_id = _as_int(params.get("section_id"))
        if section_id is not None:
            return await self._from_section(section_id)
        template_id = _as_int(params.get("template_id"))
        if template_id is not None:
            return template_id

        section_id = _as_int(body.get("section_id"))
        if section_id is not None:
            return await self._from_section(section_id)
        template_id = _as_int(body.get("template_id"))
        if template_id is not None:
            return template_id

        raise ValidationError(self.UNRESOLVED_MESSAGE, field="template_id")
