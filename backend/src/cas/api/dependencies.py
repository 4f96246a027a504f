"""
FastAPI dependencies for the CAS backend.

Stores are bound to the request's database session and handed to the
services here; route handlers never touch a store directly.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import User
from ..auth.rbac import get_current_user, get_settings
from ..core.cache_backend import CacheBackend
from ..core.config import Settings
from ..core.database import get_db
from ..core.logging import get_logger
from ..models.permission import ResourceType
from ..models.plugin import PluginStatus
from ..services.access_control_service import AccessControlService
from ..services.plugin_communication_service import PluginCommunicationService
from ..services.plugin_registry_service import PluginRegistryService
from ..stores.base import CommunicationStore, PermissionStore, PluginStore
from ..stores.sqlalchemy_store import SQLAlchemyCommunicationStore, SQLAlchemyPermissionStore, SQLAlchemyPluginStore

logger = get_logger(__name__)


def get_cache(request: Request) -> CacheBackend | None:
    return getattr(request.app.state, "cache", None)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_plugin_store(db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)) -> PluginStore:
    return SQLAlchemyPluginStore(db, settings.store_timeout_seconds)


def get_permission_store(
    db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)
) -> PermissionStore:
    return SQLAlchemyPermissionStore(db, settings.store_timeout_seconds)


def get_communication_store(
    db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_settings)
) -> CommunicationStore:
    return SQLAlchemyCommunicationStore(db, settings.store_timeout_seconds)


def get_registry_service(plugin_store: PluginStore = Depends(get_plugin_store)) -> PluginRegistryService:
    return PluginRegistryService(plugin_store)


def get_access_control_service(
    permission_store: PermissionStore = Depends(get_permission_store),
    plugin_store: PluginStore = Depends(get_plugin_store),
    cache: CacheBackend | None = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> AccessControlService:
    return AccessControlService(permission_store, plugin_store, cache=cache, cache_ttl=settings.permission_cache_ttl)


def get_communication_service(
    communication_store: CommunicationStore = Depends(get_communication_store),
    plugin_store: PluginStore = Depends(get_plugin_store),
    permission_store: PermissionStore = Depends(get_permission_store),
) -> PluginCommunicationService:
    return PluginCommunicationService(communication_store, plugin_store, permission_store)


def require_plugin_permission(
    plugin_id: str,
    permission_name: str,
    resource_type: ResourceType,
    resource_id_param: str | None = None,
):
    """
    Dependency factory guarding routes that belong to a plugin.

    The request passes only if the plugin is active and the caller holds the
    permission. With ``resource_id_param`` the named path parameter is used as
    the resource id, otherwise the type-wide permission is checked.
    A store outage surfaces as 503, never as 403.

    Args:
        plugin_id: Plugin that owns the route
        permission_name: Permission the caller must hold
        resource_type: Resource type of the permission
        resource_id_param: Optional path parameter holding the resource id

    Returns:
        FastAPI dependency function returning the current user
    """

    async def plugin_permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        registry: PluginRegistryService = Depends(get_registry_service),
        access_control: AccessControlService = Depends(get_access_control_service),
    ) -> User:
        plugin = await registry.get_plugin(plugin_id)
        if plugin.status != PluginStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Plugin '{plugin_id}' is disabled",
            )

        resource_id = None
        if resource_id_param is not None:
            resource_id = request.path_params.get(resource_id_param)
            if not resource_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Resource ID parameter '{resource_id_param}' is required",
                )

        allowed = await access_control.check(current_user.id, plugin_id, permission_name, resource_type, resource_id)
        if not allowed:
            logger.warning(
                f"Access denied: user {current_user.email} lacks {plugin_id}:{permission_name}"
                f" ({resource_type.value}{'' if resource_id is None else ':' + resource_id})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission_name}' required for plugin '{plugin_id}'",
            )
        return current_user

    return plugin_permission_checker
