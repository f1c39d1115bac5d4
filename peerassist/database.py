"""Async SQLModel database setup."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from peerassist.db_models import Task, TaskApplication, User  # noqa: F401 register tables

logger = logging.getLogger("peerassist.database")

_engine = None
_session_factory = None

# Absolute path to the migrations directory (sibling of peerassist/ package)
_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


async def init_db(url: str = "sqlite+aiosqlite:///peerassist.db") -> None:
    global _engine, _session_factory
    connect_args = {}
    if "sqlite" in url:
        connect_args["check_same_thread"] = False
        # Concurrent writers wait on the lock instead of failing fast
        connect_args["timeout"] = 30
    _engine = create_async_engine(url, echo=False, connect_args=connect_args, pool_pre_ping=True)
    _session_factory = sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async with _engine.begin() as conn:
        if "sqlite" in url:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))
        await _run_alembic_upgrade(conn)


async def _run_alembic_upgrade(conn) -> None:
    """Run Alembic migrations using the existing async connection.

    Handles three scenarios:
    1. Fresh database: runs all migrations from scratch.
    2. Existing DB created with create_all (no alembic_version table):
       stamps at revision 001 (baseline), then applies pending migrations.
    3. Existing DB with alembic_version: applies pending migrations only.
    """
    import sqlalchemy
    from alembic import command
    from alembic.config import Config

    def _do_upgrade(sync_conn):
        from alembic.migration import MigrationContext
        from alembic.script import ScriptDirectory

        alembic_cfg = Config()
        alembic_cfg.set_main_option("script_location", str(_MIGRATIONS_DIR))
        alembic_cfg.attributes["connection"] = sync_conn

        migration_ctx = MigrationContext.configure(sync_conn)
        current_rev = migration_ctx.get_current_revision()
        inspector = sqlalchemy.inspect(sync_conn)
        existing_tables = set(inspector.get_table_names())

        has_alembic_version = "alembic_version" in existing_tables
        has_existing_tables = "tasks" in existing_tables

        if has_existing_tables and not has_alembic_version:
            logger.info(
                "Existing database detected without Alembic tracking. "
                "Stamping at revision 001 (baseline), then upgrading."
            )
            command.stamp(alembic_cfg, "001")
            command.upgrade(alembic_cfg, "head")
        elif has_alembic_version:
            script = ScriptDirectory.from_config(alembic_cfg)
            head_rev = script.get_current_head()
            if current_rev != head_rev:
                logger.info(
                    "Upgrading database from %s to %s",
                    current_rev or "(empty)",
                    head_rev,
                )
                command.upgrade(alembic_cfg, "head")
            else:
                logger.debug("Database schema is up to date at revision %s", current_rev)
        else:
            logger.info("Fresh database, running all migrations")
            command.upgrade(alembic_cfg, "head")

    # Alembic's command API is synchronous; run_sync bridges the gap
    await conn.run_sync(_do_upgrade)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    assert _session_factory is not None, "Database not initialised, call init_db() first"
    async with _session_factory() as session:
        yield session


def get_session_factory() -> sessionmaker:
    assert _session_factory is not None
    return _session_factory
