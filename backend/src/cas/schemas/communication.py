"""
Cross-plugin API registry and communication audit schemas.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.communication import HttpMethod
from .permission import UserId
from .plugin import PLUGIN_ID_PATTERN

PermissionName = Annotated[str, Field(min_length=1, max_length=255)]


class PluginApiSpec(BaseModel):
    """An endpoint a plugin exposes to other plugins."""

    model_config = ConfigDict(extra="forbid")

    api_path: str = Field(..., min_length=1, max_length=500, pattern=r"^/")
    http_method: HttpMethod
    description: str | None = Field(None, max_length=1000)
    required_permissions: list[PermissionName] = Field(default_factory=list, max_length=50)
    is_public: bool = False

    @field_validator("required_permissions")
    @classmethod
    def _unique_permissions(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class PluginApiCreate(PluginApiSpec):
    plugin_id: str = Field(..., min_length=1, max_length=100)


class PluginApiResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    plugin_id: str
    api_path: str
    http_method: HttpMethod
    description: str | None = None
    required_permissions: list[str] = Field(default_factory=list)
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CommunicationRecordCreate(BaseModel):
    """Outcome of one call from ``from_plugin_id`` to another plugin's endpoint."""

    model_config = ConfigDict(extra="forbid")

    from_plugin_id: str = Field(..., pattern=PLUGIN_ID_PATTERN)
    user_id: UserId
    api_path: str = Field(..., min_length=1, max_length=500)
    http_method: HttpMethod
    request_data: dict[str, Any] | None = None
    response_data: Any | None = None
    status_code: int | None = Field(None, ge=100, le=599)
    execution_time_ms: int | None = Field(None, ge=0)
    success: bool = True
    error_message: str | None = Field(None, max_length=2000)


class CommunicationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    from_plugin_id: str
    to_plugin_id: str
    user_id: str
    api_path: str
    http_method: HttpMethod
    request_data: dict[str, Any] | None = None
    response_data: Any | None = None
    status_code: int | None = None
    execution_time_ms: int | None = None
    success: bool
    error_message: str | None = None
    timestamp: datetime


class CommunicationStats(BaseModel):
    """Aggregates over the audit log, for one plugin or for all of them."""

    plugin_id: str | None = None
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    avg_execution_time_ms: float | None = None
    max_execution_time_ms: int | None = None
    min_execution_time_ms: int | None = None
