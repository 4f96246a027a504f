"""
Cross-plugin API registry and communication audit.

``PluginApiEndpoint`` rows describe the HTTP endpoints a plugin exposes to
other plugins and the permissions a caller needs for each.
``PluginCommunicationRecord`` rows are an append-only log of calls between
plugins, written by whatever host executes those calls.
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.types import JSON

from ..core.database import Base
from .base import TimestampMixin, UUIDMixin, utcnow

_HTTP_METHOD_CHECK = "http_method IN ('GET', 'POST', 'PUT', 'DELETE')"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class PluginApiEndpoint(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "plugin_api_registry"

    plugin_id = Column(String(100), ForeignKey("plugin_records.id", ondelete="CASCADE"), nullable=False, index=True)
    api_path = Column(String(500), nullable=False)
    http_method = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    # Names of action permissions declared by the same plugin
    required_permissions = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    is_public = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(_HTTP_METHOD_CHECK, name="chk_api_http_method"),
        UniqueConstraint("plugin_id", "api_path", "http_method", name="uq_plugin_api_endpoint"),
        Index("ix_plugin_api_registry_path_method", "api_path", "http_method"),
    )

    def __repr__(self):
        return f"<PluginApiEndpoint(plugin='{self.plugin_id}', {self.http_method} {self.api_path})>"


class PluginCommunicationRecord(Base, UUIDMixin):
    __tablename__ = "plugin_communication_audit"

    from_plugin_id = Column(String(100), ForeignKey("plugin_records.id", ondelete="CASCADE"), nullable=False)
    to_plugin_id = Column(String(100), ForeignKey("plugin_records.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    api_path = Column(String(500), nullable=False)
    http_method = Column(String(10), nullable=False)
    request_data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    response_data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    status_code = Column(Integer, nullable=True)
    execution_time_ms = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    timestamp = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(_HTTP_METHOD_CHECK, name="chk_communication_http_method"),
        Index("ix_plugin_communication_audit_timestamp", timestamp.desc()),
        Index("ix_plugin_communication_audit_from_to", "from_plugin_id", "to_plugin_id"),
    )

    def __repr__(self):
        return (
            f"<PluginCommunicationRecord(from='{self.from_plugin_id}', to='{self.to_plugin_id}', "
            f"{self.http_method} {self.api_path}, success={self.success})>"
        )
