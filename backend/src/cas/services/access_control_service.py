"""
AccessControlService: the plugin permission catalog, per-user grants and checks.

A grant row is either type-wide (``resource_id`` is None) or bound to one
resource. ``check`` prefers the resource-specific row over the type-wide one,
so a specific denial overrides a type-wide grant and vice versa.

Checks may be cached. Every cache key embeds a generation counter kept per
(user, plugin); grant and revoke bump that counter once the store write has
committed, which orphans every answer cached for that pair.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import quote

from ..core.cache_backend import CacheBackend, CacheError
from ..core.exceptions import PluginNotFoundError, StoreUnavailableError, UnknownPermissionError
from ..core.logging import get_logger
from ..models.permission import ResourceType
from ..schemas.permission import (
    PermissionDefinitionCreate,
    PermissionDefinitionResponse,
    PermissionGrantResponse,
)
from ..stores.base import PermissionStore, PluginStore

logger = get_logger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 60


def _segment(value: str) -> str:
    # Escapes ":" so that no two distinct tuples share a key
    return quote(value, safe="")


def _generation_key(user_id: str, plugin_id: str) -> str:
    return f"acl:gen:{_segment(user_id)}:{_segment(plugin_id)}"


def _check_key(
    generation: str,
    user_id: str,
    plugin_id: str,
    permission_name: str,
    resource_type: ResourceType,
    resource_id: str | None,
) -> str:
    target = "*" if resource_id is None else f"={_segment(resource_id)}"
    segments = [_segment(user_id), _segment(plugin_id), generation, _segment(permission_name), resource_type.value]
    return "acl:check:" + ":".join(segments) + f":{target}"


def select_effective_grant(
    grants: list[PermissionGrantResponse], resource_id: str | None
) -> PermissionGrantResponse | None:
    """Pick the most specific grant row for ``resource_id``.

    A row for exactly ``resource_id`` wins over the type-wide row; rows for other
    resources never apply.
    """
    type_wide = None
    for grant in grants:
        if resource_id is not None and grant.resource_id == resource_id:
            return grant
        if grant.resource_id is None:
            type_wide = grant
    return type_wide


class AccessControlService:
    def __init__(
        self,
        permission_store: PermissionStore,
        plugin_store: PluginStore,
        cache: CacheBackend | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self.permission_store = permission_store
        self.plugin_store = plugin_store
        self.cache = cache
        self.cache_ttl = cache_ttl

    # Catalog
    async def register_permission(self, definition: PermissionDefinitionCreate) -> PermissionDefinitionResponse:
        """Declare a permission for a plugin. Re-registering the same tuple updates it in place."""
        await self._require_plugin(definition.plugin_id)
        stored = await self.permission_store.upsert_definition(definition)
        logger.debug(
            f"Registered permission {definition.permission_name} ({definition.resource_type.value}) "
            f"for plugin {definition.plugin_id}"
        )
        return stored

    async def list_permissions(
        self, plugin_id: str, resource_type: ResourceType | None = None
    ) -> list[PermissionDefinitionResponse]:
        await self._require_plugin(plugin_id)
        return await self.permission_store.list_definitions(plugin_id, resource_type)

    # Grants
    async def grant(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None = None,
        *,
        granted_by: str,
    ) -> PermissionGrantResponse:
        await self._require_definition(plugin_id, permission_name, resource_type, resource_id)
        return await self._record(user_id, plugin_id, permission_name, resource_type, resource_id, True, granted_by)

    async def revoke(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None = None,
        *,
        revoked_by: str,
    ) -> PermissionGrantResponse:
        """Record an explicit denial. A user with no prior grant still gets a denial row."""
        await self._require_definition(plugin_id, permission_name, resource_type, resource_id)
        return await self._record(user_id, plugin_id, permission_name, resource_type, resource_id, False, revoked_by)

    async def bulk_grant(
        self,
        user_ids: list[str],
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None = None,
        *,
        granted_by: str,
        on_record: Callable[[PermissionGrantResponse], None] | None = None,
    ) -> list[PermissionGrantResponse]:
        """Grant to each user in turn. ``on_record`` sees every row as soon as it is committed,
        so rows written before a failure are still reported.
        """
        await self._require_definition(plugin_id, permission_name, resource_type, resource_id)
        return [
            await self._record(
                user_id, plugin_id, permission_name, resource_type, resource_id, True, granted_by, on_record
            )
            for user_id in user_ids
        ]

    async def bulk_revoke(
        self,
        user_ids: list[str],
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None = None,
        *,
        revoked_by: str,
        on_record: Callable[[PermissionGrantResponse], None] | None = None,
    ) -> list[PermissionGrantResponse]:
        await self._require_definition(plugin_id, permission_name, resource_type, resource_id)
        return [
            await self._record(
                user_id, plugin_id, permission_name, resource_type, resource_id, False, revoked_by, on_record
            )
            for user_id in user_ids
        ]

    async def list_user_grants(self, user_id: str, plugin_id: str | None = None) -> list[PermissionGrantResponse]:
        return await self.permission_store.list_user_grants(user_id, plugin_id)

    # Checks
    async def check(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None = None,
    ) -> bool:
        """Return True only if the most specific matching grant row is granted.

        No row at all is a plain False. Store failures propagate as
        StoreUnavailableError and are never reported as a denial.
        """
        cache_key = None
        if self.cache is not None:
            # Read the generation before the store so a concurrent grant can only orphan our entry
            try:
                generation = await self.cache.get(_generation_key(user_id, plugin_id))
            except CacheError as e:
                logger.warning(f"Permission cache unavailable, using store: {e}")
            else:
                cache_key = _check_key(
                    generation or "0", user_id, plugin_id, permission_name, resource_type, resource_id
                )
                cached = await self._cache_get(cache_key)
                if cached is not None:
                    return cached == "1"

        grants = await self.permission_store.find_grants(
            user_id, plugin_id, permission_name, resource_type, resource_id
        )
        effective = select_effective_grant(grants, resource_id)
        allowed = effective is not None and effective.is_granted

        if cache_key is not None:
            await self._cache_set(cache_key, "1" if allowed else "0")
        return allowed

    # Helpers
    async def _require_plugin(self, plugin_id: str) -> None:
        if await self.plugin_store.get_plugin(plugin_id) is None:
            raise PluginNotFoundError(plugin_id)

    async def _require_definition(
        self,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
    ) -> None:
        """A type-wide definition covers every resource id; a specific one covers only itself."""
        await self._require_plugin(plugin_id)
        definitions = await self.permission_store.find_definitions(plugin_id, permission_name, resource_type)
        if not any(d.resource_id is None or d.resource_id == resource_id for d in definitions):
            raise UnknownPermissionError(plugin_id, permission_name, resource_type.value, resource_id)

    async def _record(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
        is_granted: bool,
        actor_id: str,
        on_record: Callable[[PermissionGrantResponse], None] | None = None,
    ) -> PermissionGrantResponse:
        stored = await self.permission_store.upsert_grant(
            user_id=user_id,
            plugin_id=plugin_id,
            permission_name=permission_name,
            resource_type=resource_type,
            resource_id=resource_id,
            is_granted=is_granted,
            granted_by=actor_id,
            granted_at=datetime.now(timezone.utc),
        )
        if on_record is not None:
            on_record(stored)
        await self._invalidate(user_id, plugin_id)
        return stored

    async def _invalidate(self, user_id: str, plugin_id: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.incr(_generation_key(user_id, plugin_id))
        except CacheError as e:
            # The grant is committed but cached checks may still answer with the old value
            logger.error(f"Permission cache invalidation failed for user {user_id} plugin {plugin_id}: {e}")
            raise StoreUnavailableError("invalidate_permission_cache", e.message, e.details) from e

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Permission cache read failed, using store: {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value, ttl_seconds=self.cache_ttl)
        except CacheError as e:
            logger.warning(f"Permission cache write failed: {e}")
