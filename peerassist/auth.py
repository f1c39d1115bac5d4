"""Authentication: bcrypt hashing with fingerprint-based DB lookup."""

from __future__ import annotations

import hashlib

import bcrypt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from peerassist.database import get_db_session
from peerassist.db_models import User
from peerassist.errors import Unauthenticated


def hash_key(key: str) -> str:
    return bcrypt.hashpw(key.encode(), bcrypt.gensalt()).decode()


def verify_key(key: str, key_hash: str) -> bool:
    return bcrypt.checkpw(key.encode(), key_hash.encode())


def key_fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def resolve_caller(session: AsyncSession, raw_key: str) -> User | None:
    """Map an API key to its user, or None when nobody owns it."""
    fp = key_fingerprint(raw_key)
    result = await session.execute(select(User).where(User.key_fingerprint == fp))
    user = result.scalar_one_or_none()
    if not user or not verify_key(raw_key, user.key_hash):
        return None
    return user


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise Unauthenticated()

    user = await resolve_caller(session, auth[7:])
    if user is None:
        raise Unauthenticated("Invalid API key")
    return user


AuthUser = Depends(get_current_user)
