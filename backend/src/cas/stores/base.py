"""
Store protocols.

Services depend on these structural types only. Implementations raise
``StoreUnavailableError`` when the backing storage cannot be reached and
return ``None`` for missing rows; they never raise for "not found".
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..models.permission import ResourceType
from ..models.plugin import PluginCategory, PluginStatus
from ..schemas.communication import (
    CommunicationRecordCreate,
    CommunicationRecordResponse,
    CommunicationStats,
    PluginApiCreate,
    PluginApiResponse,
)
from ..schemas.permission import (
    PermissionDefinitionCreate,
    PermissionDefinitionResponse,
    PermissionGrantResponse,
)
from ..schemas.plugin import PluginResponse


@runtime_checkable
class PluginStore(Protocol):
    async def list_plugins(self, category: PluginCategory | None = None) -> list[PluginResponse]:
        """All plugins ordered by id, optionally restricted to one category."""
        ...

    async def get_plugin(self, plugin_id: str) -> PluginResponse | None: ...

    async def create_plugin(self, record: PluginResponse) -> PluginResponse:
        """Insert a new plugin; raise PluginAlreadyExistsError if the id is taken."""
        ...

    async def set_status(self, plugin_id: str, status: PluginStatus) -> PluginResponse | None:
        """Atomically assign status to one row and return the row as committed."""
        ...

    async def update_config(self, plugin_id: str, config: dict[str, Any]) -> PluginResponse | None: ...


@runtime_checkable
class PermissionStore(Protocol):
    async def upsert_definition(self, definition: PermissionDefinitionCreate) -> PermissionDefinitionResponse:
        """Insert or refresh a catalog entry keyed by its unique tuple."""
        ...

    async def find_definitions(
        self, plugin_id: str, permission_name: str, resource_type: ResourceType
    ) -> list[PermissionDefinitionResponse]:
        """Catalog entries for one permission name and type, across resource ids."""
        ...

    async def list_definitions(
        self, plugin_id: str, resource_type: ResourceType | None = None
    ) -> list[PermissionDefinitionResponse]: ...

    async def upsert_grant(
        self,
        *,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
        is_granted: bool,
        granted_by: str,
        granted_at: datetime,
    ) -> PermissionGrantResponse:
        """Insert or overwrite the single grant row for the 5-tuple."""
        ...

    async def find_grants(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
    ) -> list[PermissionGrantResponse]:
        """Grant rows for the type-wide resource and, if given, for resource_id."""
        ...

    async def list_user_grants(self, user_id: str, plugin_id: str | None = None) -> list[PermissionGrantResponse]: ...


@runtime_checkable
class CommunicationStore(Protocol):
    async def upsert_api(self, endpoint: PluginApiCreate) -> PluginApiResponse:
        """Insert or refresh an endpoint keyed by (plugin_id, api_path, http_method)."""
        ...

    async def list_apis(self, plugin_id: str) -> list[PluginApiResponse]:
        """Endpoints of one plugin ordered by method, then path."""
        ...

    async def add_record(
        self, to_plugin_id: str, record: CommunicationRecordCreate, timestamp: datetime
    ) -> CommunicationRecordResponse: ...

    async def list_records(self, plugin_id: str, limit: int) -> list[CommunicationRecordResponse]:
        """Newest first; a record matches when the plugin is either caller or target."""
        ...

    async def stats(self, plugin_id: str | None = None) -> CommunicationStats: ...
