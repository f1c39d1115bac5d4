"""Tests against a schema built by the Alembic migrations rather than create_all."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import inspect, text
from sqlmodel import select

from peerassist import notifications
from peerassist.database import close_db, get_session_factory, init_db
from peerassist.db_models import TaskApplication, WorkType
from peerassist.errors import CapacityExceeded
from peerassist.services.applications import accept_applicant, apply_for_task
from peerassist.services.tasks import create_task
from peerassist.services.users import register


@pytest.fixture
async def migrated(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'migrated.db'}"
    await init_db(url)
    yield url
    await close_db()


async def _post_task(session, owner: str, people_needed: int = 1):
    return await create_task(
        session,
        owner,
        title="Move a sofa",
        description="Third floor, no lift.",
        task_date=date(2026, 11, 2),
        task_time="14:00",
        pay_rate=25.0,
        location="12 Canal Street",
        work_type=WorkType.house_shifting,
        people_needed=people_needed,
    )


@pytest.mark.asyncio
async def test_migrations_create_schema(migrated):
    async with get_session_factory()() as session:
        conn = await session.connection()

        def _indexes(sync_conn):
            return {
                ix["name"]: ix for ix in inspect(sync_conn).get_indexes("task_applications")
            }

        indexes = await conn.run_sync(_indexes)
        version = (await session.execute(text("SELECT version_num FROM alembic_version"))).scalar()

    assert version == "001"
    assert indexes["ix_task_applications_task_applicant"]["unique"]


@pytest.mark.asyncio
async def test_selection_round_on_migrated_schema(migrated, notifier):
    factory = get_session_factory()
    async with factory() as session:
        await register(session, "owner@example.com", "Owner")
        await register(session, "alice@example.com", "Alice")
        await register(session, "bob@example.com", "Bob")
        task = await _post_task(session, "owner@example.com")
        tid = task.id

        first = await apply_for_task(session, tid, "alice@example.com")
        again = await apply_for_task(session, tid, "alice@example.com")
        await apply_for_task(session, tid, "bob@example.com")
        assert first["already_applied"] is False
        assert again["already_applied"] is True

        task = await accept_applicant(session, tid, "alice@example.com", "owner@example.com")
        assert task.selected_count == 1

        with pytest.raises(CapacityExceeded):
            await accept_applicant(session, tid, "bob@example.com", "owner@example.com")

    async with factory() as session:
        rows = (
            (await session.execute(select(TaskApplication).where(TaskApplication.task_id == tid)))
            .scalars()
            .all()
        )
    assert {r.applicant_email: r.selected for r in rows} == {
        "alice@example.com": True,
        "bob@example.com": False,
    }

    await notifications.drain()
    assert [m["address"] for m in notifier.of_kind("selected")] == ["alice@example.com"]


@pytest.mark.asyncio
async def test_init_db_is_idempotent(migrated):
    async with get_session_factory()() as session:
        await register(session, "owner@example.com", "Owner")
    await close_db()

    # Re-opening an up-to-date database keeps its rows
    await init_db(migrated)
    async with get_session_factory()() as session:
        count = (await session.execute(text("SELECT count(*) FROM users"))).scalar()
        version = (await session.execute(text("SELECT version_num FROM alembic_version"))).scalar()
    assert count == 1
    assert version == "001"
