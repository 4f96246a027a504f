"""
Plugin registry model.

One row per known plugin. Rows are created at bootstrap from plugin
manifests or by an explicit install, and afterwards only their status and
configuration change.
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from ..core.database import Base
from .base import TimestampMixin


class PluginStatus(str, Enum):
    """Whether a plugin's routes and capabilities are reachable."""

    ACTIVE = "active"
    DISABLED = "disabled"


class PluginCategory(str, Enum):
    """System plugins can only be toggled by administrators."""

    SYSTEM = "system"
    APPLICATION = "application"


class PluginRecord(Base, TimestampMixin):
    __tablename__ = "plugin_records"

    # Stable identifier such as "ldap-auth"; immutable after creation
    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    version = Column(String(50), nullable=False)
    category = Column(String(20), nullable=False, default=PluginCategory.APPLICATION.value, index=True)
    is_system = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=PluginStatus.DISABLED.value, index=True)
    description = Column(Text, nullable=True)
    config = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'disabled')", name="chk_plugin_status"),
        CheckConstraint("category IN ('system', 'application')", name="chk_plugin_category"),
        CheckConstraint("is_system = (category = 'system')", name="chk_plugin_is_system"),
    )

    def __repr__(self):
        return f"<PluginRecord(id='{self.id}', category='{self.category}', status='{self.status}')>"
