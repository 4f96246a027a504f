"""PluginRegistryService: which plugins exist and whether each one is active."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..auth.models import User
from ..core.exceptions import ForbiddenError, PluginNotFoundError
from ..core.logging import get_logger
from ..models.plugin import PluginCategory, PluginStatus
from ..schemas.plugin import PluginInstallRequest, PluginResponse
from ..stores.base import PluginStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    """Outcome of an enable or disable call, for the caller's audit log."""

    plugin: PluginResponse
    previous_status: PluginStatus
    new_status: PluginStatus
    actor_id: str
    at: datetime

    @property
    def changed(self) -> bool:
        return self.previous_status != self.new_status


class PluginRegistryService:
    def __init__(self, plugin_store: PluginStore):
        self.plugin_store = plugin_store

    async def list_plugins(self, category: PluginCategory | None = None) -> list[PluginResponse]:
        return await self.plugin_store.list_plugins(category)

    async def get_plugin(self, plugin_id: str) -> PluginResponse:
        plugin = await self.plugin_store.get_plugin(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)
        return plugin

    async def enable(self, plugin_id: str, acting_user: User) -> PluginResponse:
        transition = await self.transition(plugin_id, PluginStatus.ACTIVE, acting_user)
        return transition.plugin

    async def disable(self, plugin_id: str, acting_user: User) -> PluginResponse:
        transition = await self.transition(plugin_id, PluginStatus.DISABLED, acting_user)
        return transition.plugin

    async def transition(self, plugin_id: str, status: PluginStatus, acting_user: User) -> StatusTransition:
        """Assign ``status`` to a plugin.

        Re-assigning the current status succeeds and writes the same value again,
        so concurrent callers never see an error for an idempotent request.

        Raises:
            PluginNotFoundError: unknown plugin id
            ForbiddenError: system plugin and the actor is not an administrator
        """
        plugin = await self.get_plugin(plugin_id)
        self._require_system_capability(plugin, acting_user, f"change the status of system plugin '{plugin_id}'")

        updated = await self.plugin_store.set_status(plugin_id, status)
        if updated is None:
            # Row removed between read and write
            raise PluginNotFoundError(plugin_id)

        logger.debug(
            f"Plugin {plugin_id} status {plugin.status.value} -> {updated.status.value}",
            extra={"plugin_id": plugin_id, "actor_id": acting_user.id},
        )
        return StatusTransition(
            plugin=updated,
            previous_status=plugin.status,
            new_status=updated.status,
            actor_id=acting_user.id,
            at=datetime.now(timezone.utc),
        )

    async def install(self, request: PluginInstallRequest, acting_user: User) -> PluginResponse:
        """Register a new plugin record. It always starts disabled."""
        if not acting_user.is_admin:
            raise ForbiddenError(
                "Only administrators may install plugins",
                details={"plugin_id": request.id, "actor_id": acting_user.id},
            )
        created = await self.plugin_store.create_plugin(request.to_record())
        logger.info(f"Installed plugin {created.id} ({created.category.value}) by {acting_user.id}")
        return created

    async def get_config(self, plugin_id: str, acting_user: User) -> dict[str, Any]:
        plugin = await self.get_plugin(plugin_id)
        # System plugin configuration may hold directory credentials
        self._require_system_capability(plugin, acting_user, f"read the configuration of system plugin '{plugin_id}'")
        return plugin.config

    async def update_config(self, plugin_id: str, config: dict[str, Any], acting_user: User) -> PluginResponse:
        plugin = await self.get_plugin(plugin_id)
        self._require_system_capability(plugin, acting_user, f"configure system plugin '{plugin_id}'")

        updated = await self.plugin_store.update_config(plugin_id, config)
        if updated is None:
            raise PluginNotFoundError(plugin_id)
        logger.info(f"Updated config of plugin {plugin_id} by {acting_user.id}")
        return updated

    @staticmethod
    def _require_system_capability(plugin: PluginResponse, acting_user: User, action: str) -> None:
        if plugin.is_system and not acting_user.can_manage_system_plugins():
            raise ForbiddenError(
                f"Administrator privileges required to {action}",
                details={"plugin_id": plugin.id, "actor_id": acting_user.id},
            )
