"""
Plugin permission catalog and per-user grants.

``PermissionDefinition`` rows declare what a plugin can authorize;
``UserPermissionGrant`` rows record an administrator's decision for one
user. Grants are never deleted: a revoke flips ``is_granted`` to false.

A type-wide permission (no specific resource) is stored with
``resource_id = ''`` so that the unique constraints cover it as well.
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP

from ..core.database import Base
from .base import UUIDMixin, utcnow

TYPE_WIDE_RESOURCE = ""

_RESOURCE_TYPE_CHECK = "resource_type IN ('field', 'object', 'data', 'action')"


class ResourceType(str, Enum):
    """Kind of resource a permission applies to."""

    FIELD = "field"
    OBJECT = "object"
    DATA = "data"
    ACTION = "action"


class PermissionDefinition(Base, UUIDMixin):
    __tablename__ = "plugin_rbac_permissions"

    plugin_id = Column(String(100), ForeignKey("plugin_records.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_name = Column(String(255), nullable=False)
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(255), nullable=False, default=TYPE_WIDE_RESOURCE)
    description = Column(Text, nullable=True)
    is_system_level = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(_RESOURCE_TYPE_CHECK, name="chk_permission_resource_type"),
        UniqueConstraint(
            "plugin_id", "permission_name", "resource_type", "resource_id", name="uq_plugin_permission_definition"
        ),
    )

    def __repr__(self):
        return f"<PermissionDefinition(plugin='{self.plugin_id}', name='{self.permission_name}')>"


class UserPermissionGrant(Base, UUIDMixin):
    __tablename__ = "user_plugin_permissions"

    user_id = Column(String(36), nullable=False)
    plugin_id = Column(String(100), ForeignKey("plugin_records.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_name = Column(String(255), nullable=False)
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(255), nullable=False, default=TYPE_WIDE_RESOURCE)
    is_granted = Column(Boolean, nullable=False, default=True)

    # Audit fields
    granted_by = Column(String(36), nullable=False)
    granted_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(_RESOURCE_TYPE_CHECK, name="chk_grant_resource_type"),
        UniqueConstraint(
            "user_id", "plugin_id", "permission_name", "resource_type", "resource_id", name="uq_user_plugin_permission"
        ),
        Index("ix_user_plugin_permissions_user_plugin", "user_id", "plugin_id"),
    )

    def __repr__(self):
        return (
            f"<UserPermissionGrant(user='{self.user_id}', plugin='{self.plugin_id}', "
            f"name='{self.permission_name}', granted={self.is_granted})>"
        )
