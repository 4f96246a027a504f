"""
Plugin registry schemas.

These models are the shapes exchanged between the stores, the registry
service and the HTTP layer.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..models.plugin import PluginCategory, PluginStatus

PLUGIN_ID_PATTERN = r"^[a-z0-9][a-z0-9._-]{0,99}$"


class PluginResponse(BaseModel):
    """A plugin as stored in the registry."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Stable plugin identifier, e.g. 'ldap-auth'")
    name: str = Field(..., description="Display name")
    version: str = Field(..., description="Semantic version string")
    category: PluginCategory
    is_system: bool = Field(..., description="True for system plugins")
    status: PluginStatus
    description: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PluginInstallRequest(BaseModel):
    """Register a new plugin. It starts disabled."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., pattern=PLUGIN_ID_PATTERN, description="Stable plugin identifier")
    name: str = Field(..., min_length=1, max_length=255)
    version: str = Field(..., min_length=1, max_length=50)
    category: PluginCategory = PluginCategory.APPLICATION
    description: str | None = Field(None, max_length=2000)
    config: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_system(self) -> bool:
        return self.category == PluginCategory.SYSTEM

    def to_record(self) -> PluginResponse:
        return PluginResponse(
            id=self.id,
            name=self.name,
            version=self.version,
            category=self.category,
            is_system=self.is_system,
            status=PluginStatus.DISABLED,
            description=self.description,
            config=dict(self.config),
        )


class PluginConfigUpdate(BaseModel):
    """Replace a plugin's configuration object."""

    model_config = ConfigDict(extra="forbid")

    config: dict[str, Any]


class PluginConfigResponse(BaseModel):
    plugin_id: str
    config: dict[str, Any]
