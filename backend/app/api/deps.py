"""API Dependencies."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError
from app.models.enums import AccessLevel
from app.models.organization import Actor
from app.services.access_service import (
    OperationContext,
    OrgContextOptions,
    OrgContextResolver,
    OrgContextSources,
    ResourceAccessService,
    TemplateIdResolver,
)

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def actor_from_claims(payload: Dict[str, Any]) -> Actor:
    """Build the caller from decoded token claims.

    Global roles come from ``roles`` (or Keycloak-style ``realm_access.roles``),
    memberships from ``orgs``.
    """
    subject = payload.get("sub", payload.get("id"))
    if subject is None or not str(subject).strip().isdigit():
        raise AuthenticationError("Token subject is missing or not a user id")

    global_roles = payload.get("roles")
    if global_roles is None:
        global_roles = payload.get("realm_access", {}).get("roles", [])

    try:
        return Actor(
            id=int(subject),
            global_roles=list(global_roles or []),
            org_memberships=payload.get("orgs") or [],
        )
    except PydanticValidationError as e:
        logger.warning(f"[AUTH] Malformed membership claims: {e.error_count()} errors")
        raise AuthenticationError("Malformed organization claims in token")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """Decode the bearer token into an Actor."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"[AUTH] Token rejected: {str(e)}")
        raise AuthenticationError("Could not validate credentials")
    return actor_from_claims(payload)


async def _json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError:
        # malformed JSON is reported by the route's own body parsing
        return {}
    return body if isinstance(body, dict) else {}


async def build_operation_context(
    request: Request, actor: Actor, resource_kind: Optional[str] = None
) -> OperationContext:
    return OperationContext(
        actor=actor,
        params=dict(request.path_params),
        query=dict(request.query_params),
        body=await _json_body(request),
        headers=dict(request.headers),
        resource_kind=resource_kind,
    )


def org_context(
    resource_kind: Optional[str] = None,
    optional: bool = False,
    sources: Optional[OrgContextSources] = None,
    require_roles: Optional[List[str]] = None,
    require_mode: str = "any",
):
    """Dependency factory resolving and authorizing the operation's organization."""
    options = OrgContextOptions(
        optional=optional,
        sources=sources,
        require_roles=list(require_roles or []),
        require_mode=require_mode,
    )

    async def dependency(
        request: Request,
        actor: Actor = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db),
    ) -> Optional[int]:
        ctx = await build_operation_context(request, actor, resource_kind)
        return await OrgContextResolver(db).resolve(ctx, options)

    return dependency


@dataclass
class TemplateAccess:
    template_id: int
    org_id: int
    level: AccessLevel


def require_template_access(level: AccessLevel, resource_kind: Optional[str] = None):
    """Dependency factory gating template-scoped routes on an access level."""

    async def dependency(
        request: Request,
        actor: Actor = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db),
    ) -> TemplateAccess:
        ctx = await build_operation_context(request, actor, resource_kind)
        org_id = await OrgContextResolver(db).resolve(ctx)
        template_id = await TemplateIdResolver(db).resolve(ctx)
        granted = await ResourceAccessService(db).check_template(template_id, org_id, level, actor=actor)
        return TemplateAccess(template_id=template_id, org_id=org_id, level=granted)

    return dependency


async def session_scope(
    session_id: int,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Organization of a ``/sessions/{session_id}`` route, checked against the session's owner."""
    ctx = await build_operation_context(request, actor)
    org_id = await OrgContextResolver(db).resolve(ctx)
    await ResourceAccessService(db).check_session(session_id, org_id, actor)
    return org_id


__all__ = [
    "get_db",
    "get_current_actor",
    "actor_from_claims",
    "org_context",
    "require_template_access",
    "TemplateAccess",
    "session_scope",
]
