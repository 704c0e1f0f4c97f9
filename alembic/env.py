"""
Alembic environment configuration for the authsentry security core tables.

This script sets up the migration context, connects to the database using settings.DATABASE_URL,
and defines the target metadata for the SQLModel tables. It adds src/ to sys.path so the
package resolves without an editable install.
"""
import asyncio  # For running the async engine
import os  # For path manipulation
import sys  # For modifying sys.path
from logging.config import fileConfig  # For configuring logging

from alembic import context  # For migration context
from sqlalchemy import pool  # For disabling pooling
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config  # For database connection

# Add src/ to sys.path to resolve package imports
src_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if src_root not in sys.path:
    sys.path.insert(0, src_root)

import authsentry.domain.entities  # noqa: E402,F401  Registers login_attempts, active_blocks, security_events
from authsentry.core.config.settings import settings  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Alembic Config object, provides access to alembic.ini
config = context.config

config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

# Configure logging from alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode, generating SQL scripts without a database connection.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """
    Run migrations in 'online' mode through the async driver.

    Uses a non-pooled connection to avoid conflicts during migrations.
    """
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
