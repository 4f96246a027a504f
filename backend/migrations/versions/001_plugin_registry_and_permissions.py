"""Plugin registry, permission catalog and user grants.

Revision ID: 001
Revises:
Create Date: 2025-12-01

Creates users, plugin_records, plugin_rbac_permissions and
user_plugin_permissions. Plugin rows are seeded from manifests at startup,
not here.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

from migrations.helpers import create_index_if_not_exists, drop_table_if_exists, table_exists

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RESOURCE_TYPE_CHECK = "resource_type IN ('field', 'object', 'data', 'action')"


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())

    if not table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("role", sa.String(), nullable=False, server_default="regular_user"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _timestamp("created_at"),
            _timestamp("updated_at"),
        )
    create_index_if_not_exists(inspector, "ix_users_email", "users", ["email"], unique=True)

    if not table_exists(inspector, "plugin_records"):
        op.create_table(
            "plugin_records",
            sa.Column("id", sa.String(100), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("version", sa.String(50), nullable=False),
            sa.Column("category", sa.String(20), nullable=False, server_default="application"),
            sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("status", sa.String(20), nullable=False, server_default="disabled"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("config", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
            _timestamp("created_at"),
            _timestamp("updated_at"),
            sa.CheckConstraint("status IN ('active', 'disabled')", name="chk_plugin_status"),
            sa.CheckConstraint("category IN ('system', 'application')", name="chk_plugin_category"),
            sa.CheckConstraint("is_system = (category = 'system')", name="chk_plugin_is_system"),
        )
    create_index_if_not_exists(inspector, "ix_plugin_records_category", "plugin_records", ["category"])
    create_index_if_not_exists(inspector, "ix_plugin_records_status", "plugin_records", ["status"])

    if not table_exists(inspector, "plugin_rbac_permissions"):
        op.create_table(
            "plugin_rbac_permissions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column(
                "plugin_id",
                sa.String(100),
                sa.ForeignKey("plugin_records.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("permission_name", sa.String(255), nullable=False),
            sa.Column("resource_type", sa.String(20), nullable=False),
            # '' marks a type-wide permission so the unique constraint applies to it
            sa.Column("resource_id", sa.String(255), nullable=False, server_default=""),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_system_level", sa.Boolean(), nullable=False, server_default=sa.false()),
            _timestamp("created_at"),
            sa.CheckConstraint(RESOURCE_TYPE_CHECK, name="chk_permission_resource_type"),
            sa.UniqueConstraint(
                "plugin_id",
                "permission_name",
                "resource_type",
                "resource_id",
                name="uq_plugin_permission_definition",
            ),
        )
    create_index_if_not_exists(
        inspector, "ix_plugin_rbac_permissions_plugin_id", "plugin_rbac_permissions", ["plugin_id"]
    )

    if not table_exists(inspector, "user_plugin_permissions"):
        op.create_table(
            "user_plugin_permissions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), nullable=False),
            sa.Column(
                "plugin_id",
                sa.String(100),
                sa.ForeignKey("plugin_records.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("permission_name", sa.String(255), nullable=False),
            sa.Column("resource_type", sa.String(20), nullable=False),
            sa.Column("resource_id", sa.String(255), nullable=False, server_default=""),
            sa.Column("is_granted", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("granted_by", sa.String(36), nullable=False),
            _timestamp("granted_at"),
            sa.CheckConstraint(RESOURCE_TYPE_CHECK, name="chk_grant_resource_type"),
            sa.UniqueConstraint(
                "user_id",
                "plugin_id",
                "permission_name",
                "resource_type",
                "resource_id",
                name="uq_user_plugin_permission",
            ),
        )
    create_index_if_not_exists(
        inspector, "ix_user_plugin_permissions_plugin_id", "user_plugin_permissions", ["plugin_id"]
    )
    create_index_if_not_exists(
        inspector, "ix_user_plugin_permissions_user_plugin", "user_plugin_permissions", ["user_id", "plugin_id"]
    )


def downgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    # Reverse dependency order
    for table_name in ("user_plugin_permissions", "plugin_rbac_permissions", "plugin_records", "users"):
        drop_table_if_exists(inspector, table_name)
