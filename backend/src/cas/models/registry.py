"""
Model registry for CAS.

Imports every SQLAlchemy model so ``Base.metadata`` knows all tables before
``create_all`` or alembic autogenerate runs.
"""


def register_all_models():
    """Import all SQLAlchemy models and return them by name."""
    from ..auth.models import User, UserRole
    from . import (
        Base,
        PermissionDefinition,
        PluginApiEndpoint,
        PluginCommunicationRecord,
        PluginRecord,
        UserPermissionGrant,
    )

    return {
        "Base": Base,
        "PluginRecord": PluginRecord,
        "PermissionDefinition": PermissionDefinition,
        "UserPermissionGrant": UserPermissionGrant,
        "PluginApiEndpoint": PluginApiEndpoint,
        "PluginCommunicationRecord": PluginCommunicationRecord,
        "User": User,
        "UserRole": UserRole,
    }
