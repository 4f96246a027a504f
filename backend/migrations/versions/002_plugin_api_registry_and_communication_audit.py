"""Cross-plugin API registry and communication audit.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

Creates plugin_api_registry and plugin_communication_audit.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

from migrations.helpers import create_index_if_not_exists, drop_table_if_exists, index_exists, table_exists

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

HTTP_METHOD_CHECK = "http_method IN ('GET', 'POST', 'PUT', 'DELETE')"


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False)


def _plugin_fk(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.String(100),
        sa.ForeignKey("plugin_records.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())

    if not table_exists(inspector, "plugin_api_registry"):
        op.create_table(
            "plugin_api_registry",
            sa.Column("id", sa.String(36), primary_key=True),
            _plugin_fk("plugin_id"),
            sa.Column("api_path", sa.String(500), nullable=False),
            sa.Column("http_method", sa.String(10), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("required_permissions", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
            sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
            _timestamp("created_at"),
            _timestamp("updated_at"),
            sa.CheckConstraint(HTTP_METHOD_CHECK, name="chk_api_http_method"),
            sa.UniqueConstraint("plugin_id", "api_path", "http_method", name="uq_plugin_api_endpoint"),
        )
    create_index_if_not_exists(inspector, "ix_plugin_api_registry_plugin_id", "plugin_api_registry", ["plugin_id"])
    create_index_if_not_exists(
        inspector, "ix_plugin_api_registry_path_method", "plugin_api_registry", ["api_path", "http_method"]
    )

    if not table_exists(inspector, "plugin_communication_audit"):
        op.create_table(
            "plugin_communication_audit",
            sa.Column("id", sa.String(36), primary_key=True),
            _plugin_fk("from_plugin_id"),
            _plugin_fk("to_plugin_id"),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column("api_path", sa.String(500), nullable=False),
            sa.Column("http_method", sa.String(10), nullable=False),
            sa.Column("request_data", JSONB(), nullable=True),
            sa.Column("response_data", JSONB(), nullable=True),
            sa.Column("status_code", sa.Integer(), nullable=True),
            sa.Column("execution_time_ms", sa.Integer(), nullable=True),
            sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("error_message", sa.Text(), nullable=True),
            _timestamp("timestamp"),
            sa.CheckConstraint(HTTP_METHOD_CHECK, name="chk_communication_http_method"),
        )
    create_index_if_not_exists(
        inspector, "ix_plugin_communication_audit_user_id", "plugin_communication_audit", ["user_id"]
    )
    create_index_if_not_exists(
        inspector,
        "ix_plugin_communication_audit_from_to",
        "plugin_communication_audit",
        ["from_plugin_id", "to_plugin_id"],
    )
    if not index_exists(inspector, "plugin_communication_audit", "ix_plugin_communication_audit_timestamp"):
        op.create_index(
            "ix_plugin_communication_audit_timestamp",
            "plugin_communication_audit",
            [sa.text("timestamp DESC")],
        )


def downgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    for table_name in ("plugin_communication_audit", "plugin_api_registry"):
        drop_table_if_exists(inspector, table_name)
