"""
Shared helper functions for Alembic migrations.

These helpers enable idempotent migrations by checking existence before
creating/dropping schema objects.
"""

from typing import Any

from alembic import op


def table_exists(inspector: Any, table_name: str) -> bool:
    """Check if a table exists in the database.

    Args:
        inspector: SQLAlchemy Inspector instance
        table_name: Name of the table to check

    Returns:
        True if the table exists, False otherwise
    """
    return table_name in inspector.get_table_names()


def index_exists(inspector: Any, table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table."""
    if not table_exists(inspector, table_name):
        return False
    return any(idx["name"] == index_name for idx in inspector.get_indexes(table_name))


def create_index_if_not_exists(
    inspector: Any, index_name: str, table_name: str, columns: list[str], unique: bool = False
) -> None:
    if not index_exists(inspector, table_name, index_name):
        op.create_index(index_name, table_name, columns, unique=unique)


def drop_table_if_exists(inspector: Any, table_name: str) -> None:
    """Drop a table if it exists.

    Args:
        inspector: SQLAlchemy Inspector instance
        table_name: Name of the table to drop
    """
    if table_exists(inspector, table_name):
        op.drop_table(table_name)
