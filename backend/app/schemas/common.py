"""Schemas shared across resources."""

from pydantic import BaseModel, Field


class OrganizationLinkRequest(BaseModel):
    """Share a resource with another organization at a given level."""

    target_organization_id: int = Field(..., gt=0)
    access_level: str = Field("USE", pattern="^(USE|CLONE|EDIT|ADMIN)$")


class OrganizationLinkResponse(BaseModel):
    organization_id: int
    access_level: str

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    """Body of every mapped application error."""

    detail: str
    error: str

    model_config = {"extra": "allow"}


class DeletedResponse(BaseModel):
    id: int
    deleted: bool = True
