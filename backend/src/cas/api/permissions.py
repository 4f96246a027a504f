"""Plugin permission API: catalog, grants, revocations and checks."""

from fastapi import APIRouter, Depends, Query, Request

from ..auth.models import User
from ..auth.rbac import get_current_user, require_admin
from ..core.exceptions import ForbiddenError
from ..core.logging import get_logger
from ..core.response import CASResponse
from ..models.permission import ResourceType
from ..schemas.envelope import ErrorResponse, SuccessResponse
from ..schemas.permission import (
    BulkPermissionChangeRequest,
    PermissionChangeRequest,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionDefinitionCreate,
    PermissionDefinitionResponse,
    PermissionGrantResponse,
    PermissionSpec,
)
from ..services.access_control_service import AccessControlService
from .audit import log_grant_change
from .dependencies import get_access_control_service, get_request_id

logger = get_logger(__name__)

ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (401, 403, 404, 422, 503)}

router = APIRouter(tags=["plugin-permissions"], responses=ERROR_RESPONSES)


def _require_self_or_admin(current_user: User, user_id: str) -> None:
    if user_id != current_user.id and not current_user.is_admin:
        raise ForbiddenError(
            "Administrator privileges required to inspect another user's permissions",
            details={"user_id": user_id, "actor_id": current_user.id},
        )


@router.get(
    "/plugins/{plugin_id}/permissions",
    response_model=SuccessResponse[list[PermissionDefinitionResponse]],
)
async def list_plugin_permissions(
    plugin_id: str,
    resource_type: ResourceType | None = Query(None),
    access_control: AccessControlService = Depends(get_access_control_service),
    current_user: User = Depends(get_current_user),
):
    definitions = await access_control.list_permissions(plugin_id, resource_type)
    return CASResponse.success(definitions)


@router.post(
    "/plugins/{plugin_id}/permissions",
    response_model=SuccessResponse[PermissionDefinitionResponse],
    status_code=201,
)
async def register_plugin_permission(
    plugin_id: str,
    body: PermissionSpec,
    access_control: AccessControlService = Depends(get_access_control_service),
    admin: User = Depends(require_admin),
):
    definition = PermissionDefinitionCreate(plugin_id=plugin_id, **body.model_dump())
    stored = await access_control.register_permission(definition)
    logger.info(f"Permission {body.permission_name} registered for plugin {plugin_id} by {admin.id}")
    return CASResponse.created(stored)


@router.post("/plugins/{plugin_id}/grants", response_model=SuccessResponse[PermissionGrantResponse])
async def grant_plugin_permission(
    plugin_id: str,
    body: PermissionChangeRequest,
    request: Request,
    access_control: AccessControlService = Depends(get_access_control_service),
    admin: User = Depends(require_admin),
):
    grant = await access_control.grant(
        body.user_id,
        plugin_id,
        body.permission_name,
        body.resource_type,
        body.resource_id,
        granted_by=admin.id,
    )
    log_grant_change(grant, get_request_id(request))
    return CASResponse.success(grant)


@router.post("/plugins/{plugin_id}/revocations", response_model=SuccessResponse[PermissionGrantResponse])
async def revoke_plugin_permission(
    plugin_id: str,
    body: PermissionChangeRequest,
    request: Request,
    access_control: AccessControlService = Depends(get_access_control_service),
    admin: User = Depends(require_admin),
):
    grant = await access_control.revoke(
        body.user_id,
        plugin_id,
        body.permission_name,
        body.resource_type,
        body.resource_id,
        revoked_by=admin.id,
    )
    log_grant_change(grant, get_request_id(request))
    return CASResponse.success(grant)


@router.post("/plugins/{plugin_id}/grants/bulk", response_model=SuccessResponse[list[PermissionGrantResponse]])
async def bulk_grant_plugin_permission(
    plugin_id: str,
    body: BulkPermissionChangeRequest,
    request: Request,
    access_control: AccessControlService = Depends(get_access_control_service),
    admin: User = Depends(require_admin),
):
    request_id = get_request_id(request)
    grants = await access_control.bulk_grant(
        body.user_ids,
        plugin_id,
        body.permission_name,
        body.resource_type,
        body.resource_id,
        granted_by=admin.id,
        on_record=lambda grant: log_grant_change(grant, request_id),
    )
    return CASResponse.success(grants)


@router.post(
    "/plugins/{plugin_id}/revocations/bulk",
    response_model=SuccessResponse[list[PermissionGrantResponse]],
)
async def bulk_revoke_plugin_permission(
    plugin_id: str,
    body: BulkPermissionChangeRequest,
    request: Request,
    access_control: AccessControlService = Depends(get_access_control_service),
    admin: User = Depends(require_admin),
):
    request_id = get_request_id(request)
    grants = await access_control.bulk_revoke(
        body.user_ids,
        plugin_id,
        body.permission_name,
        body.resource_type,
        body.resource_id,
        revoked_by=admin.id,
        on_record=lambda grant: log_grant_change(grant, request_id),
    )
    return CASResponse.success(grants)


@router.post("/plugins/{plugin_id}/check", response_model=SuccessResponse[PermissionCheckResponse])
async def check_plugin_permission(
    plugin_id: str,
    body: PermissionCheckRequest,
    access_control: AccessControlService = Depends(get_access_control_service),
    current_user: User = Depends(get_current_user),
):
    user_id = body.user_id or current_user.id
    _require_self_or_admin(current_user, user_id)

    allowed = await access_control.check(
        user_id, plugin_id, body.permission_name, body.resource_type, body.resource_id
    )
    return CASResponse.success(
        PermissionCheckResponse(
            user_id=user_id,
            plugin_id=plugin_id,
            permission_name=body.permission_name,
            resource_type=body.resource_type,
            resource_id=body.resource_id,
            allowed=allowed,
        )
    )


@router.get("/users/{user_id}/plugin-grants", response_model=SuccessResponse[list[PermissionGrantResponse]])
async def list_user_plugin_grants(
    user_id: str,
    plugin_id: str | None = Query(None),
    access_control: AccessControlService = Depends(get_access_control_service),
    current_user: User = Depends(get_current_user),
):
    _require_self_or_admin(current_user, user_id)
    grants = await access_control.list_user_grants(user_id, plugin_id)
    return CASResponse.success(grants)
