"""Tests for registration and authentication."""

from __future__ import annotations

import pytest

from tests.conftest import auth_header, register_user


@pytest.mark.asyncio
async def test_register_returns_api_key(client):
    data = await register_user(client, "Dana@Example.com", "Dana")
    assert data["email"] == "dana@example.com"
    assert data["api_key"].startswith("pa_")


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    await register_user(client, "dana@example.com")
    resp = await client.post(
        "/v1/register",
        json={"email": "dana@example.com", "name": "Other"},
        headers={"Accept": "application/json"},
    )
    assert resp.status_code == 409
    assert resp.json() == {"error": "User already exists", "code": "AlreadyRegistered"}


@pytest.mark.asyncio
async def test_register_invalid_email(client):
    resp = await client.post(
        "/v1/register",
        json={"email": "not-an-email", "name": "Nobody"},
        headers={"Accept": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "InvalidRequest"


@pytest.mark.asyncio
async def test_register_markdown_frontmatter(client):
    resp = await client.post(
        "/v1/register",
        content="---\nemail: md@example.com\nname: Mark Down\n---\n",
        headers={"Content-Type": "text/markdown", "Accept": "application/json"},
    )
    assert resp.status_code == 201
    assert resp.json()["email"] == "md@example.com"


@pytest.mark.asyncio
async def test_register_malformed_frontmatter(client):
    resp = await client.post(
        "/v1/register",
        content="---\nemail: [md@example.com\n---\n",
        headers={"Content-Type": "text/markdown", "Accept": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "InvalidRequest"


@pytest.mark.asyncio
async def test_me(client):
    data = await register_user(client, "dana@example.com", "Dana")
    resp = await client.get("/v1/me", headers=auth_header(data["api_key"]))
    assert resp.status_code == 200
    me = resp.json()
    assert me["email"] == "dana@example.com"
    assert me["name"] == "Dana"
    assert me["completed_tasks"] == 0


@pytest.mark.asyncio
async def test_missing_auth(client):
    resp = await client.get("/v1/me", headers={"Accept": "application/json"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "Unauthenticated"


@pytest.mark.asyncio
async def test_wrong_key(client):
    await register_user(client, "dana@example.com")
    resp = await client.get("/v1/me", headers=auth_header("pa_not-a-real-key"))
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid API key"


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
