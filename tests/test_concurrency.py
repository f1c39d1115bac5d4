"""Concurrent selection and verification against one task row."""

from __future__ import annotations

import asyncio

import pytest
from sqlmodel import select

from peerassist import notifications
from peerassist.db_models import Task, TaskApplication
from peerassist.errors import CapacityExceeded, NoPendingVerification
from peerassist.services.applications import accept_applicant
from peerassist.services.completion import verify_completion
from tests.conftest import accept, apply, auth_header, create_task


async def _accept_in_own_session(db, tid, applicant, owner):
    async with db() as session:
        try:
            await accept_applicant(session, tid, applicant, owner)
        except CapacityExceeded as e:
            return e
        return "ok"


@pytest.mark.asyncio
async def test_concurrent_accepts_respect_capacity(client, db, people):
    owner = people["owner"]
    tid = await create_task(client, owner["key"], people_needed=1)
    await apply(client, tid, people["alice"]["key"])
    await apply(client, tid, people["bob"]["key"])

    results = await asyncio.gather(
        _accept_in_own_session(db, tid, people["alice"]["email"], owner["email"]),
        _accept_in_own_session(db, tid, people["bob"]["email"], owner["email"]),
    )

    assert results.count("ok") == 1
    failures = [r for r in results if r != "ok"]
    assert len(failures) == 1
    assert failures[0].code == "CapacityExceeded"

    async with db() as session:
        task = await session.get(Task, tid)
        selected = (
            (
                await session.execute(
                    select(TaskApplication).where(
                        TaskApplication.task_id == tid,
                        TaskApplication.selected == True,  # noqa: E712
                    )
                )
            )
            .scalars()
            .all()
        )
    assert task.selected_count == 1
    assert len(selected) == 1


@pytest.mark.asyncio
async def test_many_concurrent_accepts(client, db, people):
    owner = people["owner"]
    tid = await create_task(client, owner["key"], people_needed=2)
    names = ("alice", "bob", "carol")
    for name in names:
        await apply(client, tid, people[name]["key"])

    results = await asyncio.gather(
        *(
            _accept_in_own_session(db, tid, people[name]["email"], owner["email"])
            for name in names
        )
    )
    assert results.count("ok") == 2

    async with db() as session:
        task = await session.get(Task, tid)
    assert task.selected_count == 2


@pytest.mark.asyncio
async def test_concurrent_verification_completes_once(client, db, people, notifier):
    owner = people["owner"]
    tid = await create_task(client, owner["key"])
    await apply(client, tid, people["alice"]["key"])
    await accept(client, tid, people["alice"]["email"], owner["key"])
    resp = await client.post(
        f"/v1/tasks/{tid}/end/{people['alice']['email']}",
        headers=auth_header(people["alice"]["key"]),
    )
    assert resp.status_code == 200
    await notifications.drain()
    code = notifier.last_code_for(owner["email"])

    async def verify():
        async with db() as session:
            try:
                await verify_completion(session, tid, owner["email"], code)
            except NoPendingVerification:
                return "already"
            return "ok"

    results = await asyncio.gather(verify(), verify())
    assert sorted(results) == ["already", "ok"]

    resp = await client.get("/v1/me", headers=auth_header(people["alice"]["key"]))
    assert resp.json()["completed_tasks"] == 1
