"""
PluginCommunicationService: the cross-plugin API registry and its audit log.

Plugins publish the endpoints other plugins may call, each with the action
permissions a caller must hold. Calls themselves are executed elsewhere; the
host that executes them reports each outcome here so that history and
statistics can be queried per plugin.
"""

from datetime import datetime, timezone

from ..core.exceptions import PluginNotFoundError, UnknownPermissionError
from ..core.logging import get_logger
from ..models.permission import ResourceType
from ..schemas.communication import (
    CommunicationRecordCreate,
    CommunicationRecordResponse,
    CommunicationStats,
    PluginApiCreate,
    PluginApiResponse,
)
from ..stores.base import CommunicationStore, PermissionStore, PluginStore

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 100
MAX_HISTORY_LIMIT = 1000


class PluginCommunicationService:
    def __init__(
        self,
        communication_store: CommunicationStore,
        plugin_store: PluginStore,
        permission_store: PermissionStore,
    ):
        self.communication_store = communication_store
        self.plugin_store = plugin_store
        self.permission_store = permission_store

    async def register_api(self, endpoint: PluginApiCreate) -> PluginApiResponse:
        """Publish an endpoint. Re-registering the same path and method updates it in place.

        Every required permission must be a type-wide action permission the
        plugin has declared, otherwise UnknownPermissionError is raised.
        """
        await self._require_plugin(endpoint.plugin_id)
        for permission_name in endpoint.required_permissions:
            definitions = await self.permission_store.find_definitions(
                endpoint.plugin_id, permission_name, ResourceType.ACTION
            )
            if not any(d.resource_id is None for d in definitions):
                raise UnknownPermissionError(endpoint.plugin_id, permission_name, ResourceType.ACTION.value)

        stored = await self.communication_store.upsert_api(endpoint)
        logger.info(f"Registered API {endpoint.http_method.value} {endpoint.api_path} for plugin {endpoint.plugin_id}")
        return stored

    async def list_apis(self, plugin_id: str) -> list[PluginApiResponse]:
        await self._require_plugin(plugin_id)
        return await self.communication_store.list_apis(plugin_id)

    async def record_communication(
        self, to_plugin_id: str, record: CommunicationRecordCreate
    ) -> CommunicationRecordResponse:
        """Append one call outcome to the audit log. Both plugins must be registered."""
        await self._require_plugin(record.from_plugin_id)
        await self._require_plugin(to_plugin_id)
        stored = await self.communication_store.add_record(to_plugin_id, record, datetime.now(timezone.utc))
        logger.debug(
            f"Recorded {record.http_method.value} {record.api_path} from {record.from_plugin_id} "
            f"to {to_plugin_id} (success={record.success})"
        )
        return stored

    async def get_history(
        self, plugin_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[CommunicationRecordResponse]:
        """Calls made or received by the plugin, newest first."""
        await self._require_plugin(plugin_id)
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        return await self.communication_store.list_records(plugin_id, limit)

    async def get_stats(self, plugin_id: str | None = None) -> CommunicationStats:
        if plugin_id is not None:
            await self._require_plugin(plugin_id)
        return await self.communication_store.stats(plugin_id)

    async def _require_plugin(self, plugin_id: str) -> None:
        if await self.plugin_store.get_plugin(plugin_id) is None:
            raise PluginNotFoundError(plugin_id)
