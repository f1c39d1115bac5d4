"""User registration and profile service (SQLModel)."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from peerassist.auth import hash_key, key_fingerprint
from peerassist.db_models import User
from peerassist.errors import AlreadyRegistered
from peerassist.ids import api_key

logger = logging.getLogger("peerassist.users")


async def register(
    session: AsyncSession,
    email: str,
    name: str,
    mobile: str | None = None,
) -> dict:
    """Register a new user. Returns the email and the raw API key."""
    if await session.get(User, email):
        raise AlreadyRegistered()

    key = api_key()
    user = User(
        email=email,
        name=name,
        mobile=mobile,
        key_hash=hash_key(key),
        key_fingerprint=key_fingerprint(key),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise AlreadyRegistered() from None

    logger.info("Registered user %s", email)
    return {"email": email, "api_key": key}


def user_to_dict(user: User) -> dict:
    return {
        "email": user.email,
        "name": user.name,
        "mobile": user.mobile,
        "completed_tasks": user.completed_tasks,
    }
