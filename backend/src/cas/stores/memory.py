"""
In-process store implementations.

Used by tests and by callers embedding the services without a database.
They must be constructed explicitly; the application never falls back to
them when the database is unreachable.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from ..core.exceptions import PluginAlreadyExistsError
from ..models.communication import HttpMethod
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

DefinitionKey = tuple[str, str, ResourceType, str | None]
GrantKey = tuple[str, str, str, ResourceType, str | None]
ApiKey = tuple[str, str, HttpMethod]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPluginStore:
    def __init__(self, plugins: list[PluginResponse] | None = None):
        self._plugins: dict[str, PluginResponse] = {}
        self._lock = threading.RLock()
        for plugin in plugins or []:
            self._plugins[plugin.id] = plugin.model_copy(deep=True)

    async def list_plugins(self, category: PluginCategory | None = None) -> list[PluginResponse]:
        with self._lock:
            plugins = sorted(self._plugins.values(), key=lambda p: p.id)
            return [p.model_copy(deep=True) for p in plugins if category is None or p.category == category]

    async def get_plugin(self, plugin_id: str) -> PluginResponse | None:
        with self._lock:
            plugin = self._plugins.get(plugin_id)
            return plugin.model_copy(deep=True) if plugin else None

    async def create_plugin(self, record: PluginResponse) -> PluginResponse:
        with self._lock:
            if record.id in self._plugins:
                raise PluginAlreadyExistsError(record.id)
            now = _now()
            stored = record.model_copy(deep=True, update={"created_at": now, "updated_at": now})
            self._plugins[record.id] = stored
            return stored.model_copy(deep=True)

    async def set_status(self, plugin_id: str, status: PluginStatus) -> PluginResponse | None:
        return self._update(plugin_id, status=status)

    async def update_config(self, plugin_id: str, config: dict[str, Any]) -> PluginResponse | None:
        return self._update(plugin_id, config=dict(config))

    def _update(self, plugin_id: str, **changes: Any) -> PluginResponse | None:
        with self._lock:
            plugin = self._plugins.get(plugin_id)
            if plugin is None:
                return None
            updated = plugin.model_copy(deep=True, update={**changes, "updated_at": _now()})
            self._plugins[plugin_id] = updated
            return updated.model_copy(deep=True)


class InMemoryPermissionStore:
    def __init__(self):
        self._definitions: dict[DefinitionKey, PermissionDefinitionResponse] = {}
        self._grants: dict[GrantKey, PermissionGrantResponse] = {}
        self._lock = threading.RLock()

    async def upsert_definition(self, definition: PermissionDefinitionCreate) -> PermissionDefinitionResponse:
        key = (definition.plugin_id, definition.permission_name, definition.resource_type, definition.resource_id)
        with self._lock:
            existing = self._definitions.get(key)
            stored = PermissionDefinitionResponse(
                id=existing.id if existing else str(uuid.uuid4()),
                plugin_id=definition.plugin_id,
                permission_name=definition.permission_name,
                resource_type=definition.resource_type,
                resource_id=definition.resource_id,
                is_system_level=definition.is_system_level,
                description=definition.description,
                created_at=existing.created_at if existing else _now(),
            )
            self._definitions[key] = stored
            return stored.model_copy()

    async def find_definitions(
        self, plugin_id: str, permission_name: str, resource_type: ResourceType
    ) -> list[PermissionDefinitionResponse]:
        with self._lock:
            return [
                d.model_copy()
                for (p_id, name, r_type, _), d in self._definitions.items()
                if (p_id, name, r_type) == (plugin_id, permission_name, resource_type)
            ]

    async def list_definitions(
        self, plugin_id: str, resource_type: ResourceType | None = None
    ) -> list[PermissionDefinitionResponse]:
        with self._lock:
            matches = [
                d
                for d in self._definitions.values()
                if d.plugin_id == plugin_id and (resource_type is None or d.resource_type == resource_type)
            ]
        matches.sort(key=lambda d: (d.permission_name, d.resource_type.value, d.resource_id or ""))
        return [d.model_copy() for d in matches]

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
        key = (user_id, plugin_id, permission_name, resource_type, resource_id)
        with self._lock:
            existing = self._grants.get(key)
            stored = PermissionGrantResponse(
                id=existing.id if existing else str(uuid.uuid4()),
                user_id=user_id,
                plugin_id=plugin_id,
                permission_name=permission_name,
                resource_type=resource_type,
                resource_id=resource_id,
                is_granted=is_granted,
                granted_by=granted_by,
                granted_at=granted_at,
            )
            self._grants[key] = stored
            return stored.model_copy()

    async def find_grants(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
    ) -> list[PermissionGrantResponse]:
        candidates = {None, resource_id}
        with self._lock:
            return [
                self._grants[key].model_copy()
                for key in [(user_id, plugin_id, permission_name, resource_type, rid) for rid in candidates]
                if key in self._grants
            ]

    async def list_user_grants(self, user_id: str, plugin_id: str | None = None) -> list[PermissionGrantResponse]:
        with self._lock:
            matches = [
                g
                for g in self._grants.values()
                if g.user_id == user_id and (plugin_id is None or g.plugin_id == plugin_id)
            ]
        matches.sort(key=lambda g: (g.plugin_id, g.permission_name, g.resource_type.value, g.resource_id or ""))
        return [g.model_copy() for g in matches]


class InMemoryCommunicationStore:
    def __init__(self):
        self._apis: dict[ApiKey, PluginApiResponse] = {}
        self._records: list[CommunicationRecordResponse] = []
        self._lock = threading.RLock()

    async def upsert_api(self, endpoint: PluginApiCreate) -> PluginApiResponse:
        key = (endpoint.plugin_id, endpoint.api_path, endpoint.http_method)
        with self._lock:
            existing = self._apis.get(key)
            now = _now()
            stored = PluginApiResponse(
                id=existing.id if existing else str(uuid.uuid4()),
                plugin_id=endpoint.plugin_id,
                api_path=endpoint.api_path,
                http_method=endpoint.http_method,
                description=endpoint.description,
                required_permissions=list(endpoint.required_permissions),
                is_public=endpoint.is_public,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._apis[key] = stored
            return stored.model_copy(deep=True)

    async def list_apis(self, plugin_id: str) -> list[PluginApiResponse]:
        with self._lock:
            matches = [a for a in self._apis.values() if a.plugin_id == plugin_id]
        matches.sort(key=lambda a: (a.http_method.value, a.api_path))
        return [a.model_copy(deep=True) for a in matches]

    async def add_record(
        self, to_plugin_id: str, record: CommunicationRecordCreate, timestamp: datetime
    ) -> CommunicationRecordResponse:
        stored = CommunicationRecordResponse(
            id=str(uuid.uuid4()), to_plugin_id=to_plugin_id, timestamp=timestamp, **record.model_dump()
        )
        with self._lock:
            self._records.append(stored)
        return stored.model_copy(deep=True)

    async def list_records(self, plugin_id: str, limit: int) -> list[CommunicationRecordResponse]:
        with self._lock:
            # Newer appends win ties
            matches = [r for r in reversed(self._records) if plugin_id in (r.from_plugin_id, r.to_plugin_id)]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return [r.model_copy(deep=True) for r in matches[:limit]]

    async def stats(self, plugin_id: str | None = None) -> CommunicationStats:
        with self._lock:
            records = [
                r for r in self._records if plugin_id is None or plugin_id in (r.from_plugin_id, r.to_plugin_id)
            ]
        timings = [r.execution_time_ms for r in records if r.execution_time_ms is not None]
        successful = sum(1 for r in records if r.success)
        return CommunicationStats(
            plugin_id=plugin_id,
            total_calls=len(records),
            successful_calls=successful,
            failed_calls=len(records) - successful,
            avg_execution_time_ms=sum(timings) / len(timings) if timings else None,
            max_execution_time_ms=max(timings, default=None),
            min_execution_time_ms=min(timings, default=None),
        )
