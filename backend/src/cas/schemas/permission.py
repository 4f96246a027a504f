"""
Plugin permission schemas: catalog entries, grants and checks.

``resource_id`` is ``None`` for a type-wide permission. Stores may keep a
sentinel for it internally; these models always expose ``None``.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.permission import TYPE_WIDE_RESOURCE, ResourceType


UserId = Annotated[str, Field(min_length=1, max_length=36)]


def _normalize_resource_id(value):
    if value == TYPE_WIDE_RESOURCE:
        return None
    return value


class PermissionTarget(BaseModel):
    """Identifies one permission of a plugin, optionally for a single resource."""

    model_config = ConfigDict(extra="forbid")

    permission_name: str = Field(..., min_length=1, max_length=255)
    resource_type: ResourceType
    resource_id: str | None = Field(None, min_length=1, max_length=255)


class PermissionSpec(PermissionTarget):
    """A permission a plugin declares about itself."""

    is_system_level: bool = False
    description: str | None = Field(None, max_length=1000)


class PermissionDefinitionCreate(PermissionSpec):
    plugin_id: str = Field(..., min_length=1, max_length=100)


class PermissionDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    plugin_id: str
    permission_name: str
    resource_type: ResourceType
    resource_id: str | None = None
    is_system_level: bool = False
    description: str | None = None
    created_at: datetime | None = None

    @field_validator("resource_id", mode="before")
    @classmethod
    def _type_wide_resource(cls, v):
        return _normalize_resource_id(v)


class PermissionChangeRequest(PermissionTarget):
    """Grant or revoke a permission for one user."""

    user_id: UserId


class BulkPermissionChangeRequest(PermissionTarget):
    """Grant or revoke the same permission for several users."""

    user_ids: list[UserId] = Field(..., min_length=1, max_length=500)

    @field_validator("user_ids")
    @classmethod
    def _unique_user_ids(cls, v: list[str]) -> list[str]:
        # Preserve order, drop duplicates
        return list(dict.fromkeys(v))


class PermissionCheckRequest(PermissionTarget):
    """Ask whether a user holds a permission. Defaults to the caller."""

    user_id: UserId | None = None


class PermissionCheckResponse(BaseModel):
    user_id: str
    plugin_id: str
    permission_name: str
    resource_type: ResourceType
    resource_id: str | None = None
    allowed: bool


class PermissionGrantResponse(BaseModel):
    """A stored grant or denial for one user."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    user_id: str
    plugin_id: str
    permission_name: str
    resource_type: ResourceType
    resource_id: str | None = None
    is_granted: bool
    granted_by: str
    granted_at: datetime

    @field_validator("resource_id", mode="before")
    @classmethod
    def _type_wide_resource(cls, v):
        return _normalize_resource_id(v)
