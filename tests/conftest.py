"""Test fixtures with a per-test SQLite file (WAL) via SQLModel."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from peerassist import notifications
from peerassist.database import get_db_session
from peerassist.db_models import Task, TaskApplication, User  # noqa: F401 register tables
from peerassist.main import app
from peerassist.rate_limit import limiter

TASK_BODY = {
    "title": "Move a sofa",
    "description": "Third floor, no lift. Bring gloves.",
    "task_date": "2026-11-02",
    "task_time": "14:00",
    "pay_rate": 25.0,
    "location": "12 Canal Street",
    "work_type": "House Shifting",
    "people_needed": 1,
}


class RecordingNotifier:
    """Captures dispatched messages instead of mailing them."""

    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_code(self, address: str, code: str, task_title: str) -> None:
        self.sent.append(
            {"kind": "code", "address": address, "code": code, "task_title": task_title}
        )

    async def send_selected(self, address: str, task_title: str) -> None:
        self.sent.append({"kind": "selected", "address": address, "task_title": task_title})

    def of_kind(self, kind: str) -> list[dict]:
        return [m for m in self.sent if m["kind"] == kind]

    def last_code_for(self, address: str) -> str:
        codes = [m["code"] for m in self.of_kind("code") if m["address"] == address]
        assert codes, f"no code sent to {address}"
        return codes[-1]


@pytest.fixture
async def db(tmp_path):
    # A file, not :memory:, so concurrent sessions get their own connections
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA journal_mode=WAL"))
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async def override_get_db_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session

    yield factory

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture(autouse=True)
def no_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
async def notifier():
    recorder = RecordingNotifier()
    notifications.set_notifier(recorder)
    yield recorder
    await notifications.drain()
    notifications.set_notifier(None)


@pytest.fixture
async def client(db, notifier):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register_user(client: AsyncClient, email: str, name: str = "Test User") -> dict:
    """Helper: register a user, return {"email", "api_key"}."""
    resp = await client.post(
        "/v1/register",
        json={"email": email, "name": name},
        headers={"Accept": "application/json"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_header(api_key: str) -> dict:
    return {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}


async def create_task(client: AsyncClient, api_key: str, **overrides) -> str:
    """Helper: post a task as ``api_key``'s owner, return its id."""
    resp = await client.post(
        "/v1/tasks", json={**TASK_BODY, **overrides}, headers=auth_header(api_key)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["task_id"]


@pytest.fixture
async def people(client):
    """Register an owner and three would-be workers, keyed by role."""
    users = {}
    for role in ("owner", "alice", "bob", "carol"):
        data = await register_user(client, f"{role}@example.com", role.title())
        users[role] = {"email": data["email"], "key": data["api_key"]}
    return users


async def apply(client: AsyncClient, task_id: str, api_key: str):
    return await client.post(f"/v1/tasks/{task_id}/apply", headers=auth_header(api_key))


async def accept(client: AsyncClient, task_id: str, email: str, api_key: str):
    return await client.post(
        f"/v1/tasks/{task_id}/accept/{email}", headers=auth_header(api_key)
    )
