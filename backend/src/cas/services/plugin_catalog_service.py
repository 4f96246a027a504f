"""Seed the plugin registry and permission catalog from discovered manifests."""

from dataclasses import dataclass

from ..core.exceptions import PluginAlreadyExistsError
from ..core.logging import get_logger
from ..plugins.loader import PluginManifest
from ..stores.base import CommunicationStore, PermissionStore, PluginStore

logger = get_logger(__name__)


@dataclass
class SeedResult:
    discovered: int = 0
    created: int = 0
    existing: int = 0
    permissions: int = 0
    apis: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "discovered": self.discovered,
            "created": self.created,
            "existing": self.existing,
            "permissions": self.permissions,
            "apis": self.apis,
        }


class PluginCatalogService:
    """Registers shipped plugins and their permissions.

    - Creates a plugin row if missing, always disabled
    - Never changes the status or config of an existing row
    - Upserts every declared permission, then every declared API
    """

    def __init__(
        self,
        plugin_store: PluginStore,
        permission_store: PermissionStore,
        communication_store: CommunicationStore | None = None,
    ):
        self.plugin_store = plugin_store
        self.permission_store = permission_store
        self.communication_store = communication_store

    async def seed(self, manifests: dict[str, PluginManifest]) -> SeedResult:
        result = SeedResult(discovered=len(manifests))
        for plugin_id, manifest in manifests.items():
            if await self.plugin_store.get_plugin(plugin_id) is None:
                try:
                    await self.plugin_store.create_plugin(manifest.to_install_request().to_record())
                    result.created += 1
                    logger.info(f"Registered plugin {plugin_id} from manifest (disabled)")
                except PluginAlreadyExistsError:
                    # Another worker seeded it first
                    result.existing += 1
            else:
                result.existing += 1

            for definition in manifest.permission_definitions():
                await self.permission_store.upsert_definition(definition)
                result.permissions += 1

            if self.communication_store is not None:
                for api in manifest.api_definitions():
                    await self.communication_store.upsert_api(api)
                    result.apis += 1

        logger.info("Plugin catalog seeded", extra=result.as_dict())
        return result
