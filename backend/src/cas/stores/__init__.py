"""Persistence contracts for the plugin registry, the permission catalog and the plugin API registry."""

from .base import CommunicationStore, PermissionStore, PluginStore
from .memory import InMemoryCommunicationStore, InMemoryPermissionStore, InMemoryPluginStore
from .sqlalchemy_store import SQLAlchemyCommunicationStore, SQLAlchemyPermissionStore, SQLAlchemyPluginStore

__all__ = [
    "PluginStore",
    "PermissionStore",
    "InMemoryPluginStore",
    "InMemoryPermissionStore",
    "SQLAlchemyPluginStore",
    "SQLAlchemyPermissionStore",
    "CommunicationStore",
    "InMemoryCommunicationStore",
    "SQLAlchemyCommunicationStore",
]
