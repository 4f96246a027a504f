"""
Database models for the CAS backend.
"""

from .base import Base
from .communication import HttpMethod, PluginApiEndpoint, PluginCommunicationRecord
from .permission import TYPE_WIDE_RESOURCE, PermissionDefinition, ResourceType, UserPermissionGrant
from .plugin import PluginCategory, PluginRecord, PluginStatus

__all__ = [
    "Base",
    "PluginRecord",
    "PluginStatus",
    "PluginCategory",
    "PermissionDefinition",
    "UserPermissionGrant",
    "ResourceType",
    "TYPE_WIDE_RESOURCE",
    "PluginApiEndpoint",
    "PluginCommunicationRecord",
    "HttpMethod",
]
