"""Cross-plugin API registry and communication audit API."""

from fastapi import APIRouter, Depends, Query

from ..auth.models import User
from ..auth.rbac import get_current_user, require_admin
from ..core.response import CASResponse
from ..schemas.communication import (
    CommunicationRecordCreate,
    CommunicationRecordResponse,
    CommunicationStats,
    PluginApiCreate,
    PluginApiResponse,
    PluginApiSpec,
)
from ..schemas.envelope import ErrorResponse, SuccessResponse
from ..services.plugin_communication_service import (
    DEFAULT_HISTORY_LIMIT,
    MAX_HISTORY_LIMIT,
    PluginCommunicationService,
)
from .dependencies import get_communication_service

ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (401, 403, 404, 422, 503)}

router = APIRouter(tags=["plugin-communication"], responses=ERROR_RESPONSES)


@router.get("/plugins/{plugin_id}/apis", response_model=SuccessResponse[list[PluginApiResponse]])
async def list_plugin_apis(
    plugin_id: str,
    communication: PluginCommunicationService = Depends(get_communication_service),
    current_user: User = Depends(get_current_user),
):
    apis = await communication.list_apis(plugin_id)
    return CASResponse.success(apis)


@router.post("/plugins/{plugin_id}/apis", response_model=SuccessResponse[PluginApiResponse], status_code=201)
async def register_plugin_api(
    plugin_id: str,
    body: PluginApiSpec,
    communication: PluginCommunicationService = Depends(get_communication_service),
    admin: User = Depends(require_admin),
):
    endpoint = await communication.register_api(PluginApiCreate(plugin_id=plugin_id, **body.model_dump()))
    return CASResponse.created(endpoint)


@router.post(
    "/plugins/{plugin_id}/communications",
    response_model=SuccessResponse[CommunicationRecordResponse],
    status_code=201,
)
async def record_plugin_communication(
    plugin_id: str,
    body: CommunicationRecordCreate,
    communication: PluginCommunicationService = Depends(get_communication_service),
    admin: User = Depends(require_admin),
):
    """Record the outcome of a call made to ``plugin_id`` by another plugin."""
    record = await communication.record_communication(plugin_id, body)
    return CASResponse.created(record)


@router.get(
    "/plugins/{plugin_id}/communications",
    response_model=SuccessResponse[list[CommunicationRecordResponse]],
)
async def get_plugin_communication_history(
    plugin_id: str,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    communication: PluginCommunicationService = Depends(get_communication_service),
    admin: User = Depends(require_admin),
):
    history = await communication.get_history(plugin_id, limit)
    return CASResponse.success(history)


@router.get("/plugin-communications/stats", response_model=SuccessResponse[CommunicationStats])
async def get_plugin_communication_stats(
    plugin_id: str | None = Query(None),
    communication: PluginCommunicationService = Depends(get_communication_service),
    admin: User = Depends(require_admin),
):
    stats = await communication.get_stats(plugin_id)
    return CASResponse.success(stats)
