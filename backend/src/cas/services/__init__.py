"""
Services package for the CAS backend.

Business logic for the plugin registry and plugin access control. Services
receive their stores at construction time.
"""

from .access_control_service import AccessControlService
from .plugin_catalog_service import PluginCatalogService, SeedResult
from .plugin_registry_service import PluginRegistryService, StatusTransition

__all__ = [
    "AccessControlService",
    "PluginCatalogService",
    "PluginRegistryService",
    "SeedResult",
    "StatusTransition",
]
