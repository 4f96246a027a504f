"""Structured audit events for plugin status and grant changes.

Emission is best effort: a failure to log is reported on the application
logger and never changes the response of the operation that was audited.
"""

import structlog

from ..core.logging import get_logger
from ..schemas.permission import PermissionGrantResponse
from ..services.plugin_registry_service import StatusTransition

audit_logger = structlog.get_logger("cas.audit")
logger = get_logger(__name__)


def log_status_transition(transition: StatusTransition, request_id: str | None = None) -> None:
    try:
        audit_logger.info(
            "plugin_status_changed" if transition.changed else "plugin_status_unchanged",
            plugin_id=transition.plugin.id,
            previous_status=transition.previous_status.value,
            new_status=transition.new_status.value,
            actor_id=transition.actor_id,
            timestamp=transition.at.isoformat(),
            request_id=request_id,
        )
    except Exception as e:  # noqa: BLE001
        logger.warning(f"Audit log for plugin {transition.plugin.id} failed: {e}")


def log_grant_change(grant: PermissionGrantResponse, request_id: str | None = None) -> None:
    try:
        audit_logger.info(
            "plugin_permission_granted" if grant.is_granted else "plugin_permission_revoked",
            user_id=grant.user_id,
            plugin_id=grant.plugin_id,
            permission_name=grant.permission_name,
            resource_type=grant.resource_type.value,
            resource_id=grant.resource_id,
            is_granted=grant.is_granted,
            actor_id=grant.granted_by,
            timestamp=grant.granted_at.isoformat(),
            request_id=request_id,
        )
    except Exception as e:  # noqa: BLE001
        logger.warning(f"Audit log for grant of {grant.permission_name} to {grant.user_id} failed: {e}")
