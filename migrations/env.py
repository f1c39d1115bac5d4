"""Alembic environment for PeerAssist.

At app startup database.py hands over its connection; from the command line
(`alembic upgrade head`) an engine is built from the app settings.
Batch mode is on because SQLite cannot ALTER most things in place.
"""

from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from peerassist.db_models import Task, TaskApplication, User  # noqa: F401 register tables

logger = logging.getLogger("alembic.env")

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def _configure_and_run(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit the migration SQL without a database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _configure_and_run(connection)
        return

    url = config.get_main_option("sqlalchemy.url")
    if not url:
        from peerassist.config import settings

        db_path = settings.database_url
        if not db_path.startswith("sqlite"):
            url = f"sqlite:///{db_path}"
        else:
            url = db_path.replace("sqlite+aiosqlite", "sqlite")
        config.set_main_option("sqlalchemy.url", url)

    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure_and_run(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
