import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Add the src directory to the path so we can import our models
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_target_metadata():
    """Get target metadata lazily to avoid Settings validation issues."""
    from cas.core.database import Base
    from cas.models.registry import register_all_models

    register_all_models()
    return Base.metadata


def get_database_url():
    """Get database URL from the Alembic config, falling back to CAS_DATABASE_URL."""
    database_url = config.get_main_option("sqlalchemy.url") or os.getenv("CAS_DATABASE_URL")
    if not database_url:
        raise RuntimeError(
            "Could not determine database URL. Please set CAS_DATABASE_URL environment variable "
            "or configure Alembic directly."
        )

    # Alembic runs synchronously; swap the asyncpg driver for psycopg
    if database_url.startswith("postgresql+asyncpg://"):
        database_url = database_url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)

    return database_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=get_database_url(),
        target_metadata=get_target_metadata(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=get_target_metadata(),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
