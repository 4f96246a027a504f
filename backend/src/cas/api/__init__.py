"""
API package for the CAS backend.

This package contains the FastAPI routers for the plugin registry and
plugin access control.
"""

from .health import router as health_router
from .permissions import router as permissions_router
from .plugins import router as plugins_router

__all__ = [
    "health_router",
    "permissions_router",
    "plugins_router",
]
