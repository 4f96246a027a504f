"""Plugin registry API: list, inspect, enable/disable, install and configure plugins."""

from fastapi import APIRouter, Depends, Query, Request

from ..auth.models import User
from ..auth.rbac import get_current_user, require_admin
from ..core.logging import get_logger
from ..core.response import CASResponse
from ..models.plugin import PluginCategory, PluginStatus
from ..schemas.envelope import ErrorResponse, SuccessResponse
from ..schemas.plugin import PluginConfigResponse, PluginConfigUpdate, PluginInstallRequest, PluginResponse
from ..services.plugin_registry_service import PluginRegistryService
from .audit import log_status_transition
from .dependencies import get_registry_service, get_request_id

logger = get_logger(__name__)

ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (401, 403, 404, 409, 422, 503)}

router = APIRouter(prefix="/plugins", tags=["plugins"], responses=ERROR_RESPONSES)


@router.get("", response_model=SuccessResponse[list[PluginResponse]])
async def list_plugins(
    category: PluginCategory | None = Query(None, description="Restrict to one category"),
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    plugins = await registry.list_plugins(category)
    return CASResponse.success(plugins)


@router.post("", response_model=SuccessResponse[PluginResponse], status_code=201)
async def install_plugin(
    body: PluginInstallRequest,
    registry: PluginRegistryService = Depends(get_registry_service),
    admin: User = Depends(require_admin),
):
    plugin = await registry.install(body, admin)
    return CASResponse.created(plugin)


@router.get("/{plugin_id}", response_model=SuccessResponse[PluginResponse])
async def get_plugin(
    plugin_id: str,
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    plugin = await registry.get_plugin(plugin_id)
    return CASResponse.success(plugin)


async def _set_status(
    request: Request,
    plugin_id: str,
    status: PluginStatus,
    registry: PluginRegistryService,
    current_user: User,
):
    transition = await registry.transition(plugin_id, status, current_user)
    log_status_transition(transition, get_request_id(request))
    return CASResponse.success(transition.plugin)


@router.post("/{plugin_id}/enable", response_model=SuccessResponse[PluginResponse])
async def enable_plugin(
    plugin_id: str,
    request: Request,
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    return await _set_status(request, plugin_id, PluginStatus.ACTIVE, registry, current_user)


@router.post("/{plugin_id}/disable", response_model=SuccessResponse[PluginResponse])
async def disable_plugin(
    plugin_id: str,
    request: Request,
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    return await _set_status(request, plugin_id, PluginStatus.DISABLED, registry, current_user)


@router.get("/{plugin_id}/config", response_model=SuccessResponse[PluginConfigResponse])
async def get_plugin_config(
    plugin_id: str,
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    config = await registry.get_config(plugin_id, current_user)
    return CASResponse.success(PluginConfigResponse(plugin_id=plugin_id, config=config))


@router.put("/{plugin_id}/config", response_model=SuccessResponse[PluginConfigResponse])
async def update_plugin_config(
    plugin_id: str,
    body: PluginConfigUpdate,
    registry: PluginRegistryService = Depends(get_registry_service),
    current_user: User = Depends(get_current_user),
):
    plugin = await registry.update_config(plugin_id, body.config, current_user)
    return CASResponse.success(PluginConfigResponse(plugin_id=plugin.id, config=plugin.config))
