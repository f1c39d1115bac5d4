"""Background tasks: reclaim tasks stuck waiting for completion verification."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from peerassist.config import settings
from peerassist.db_models import Task, TaskStatus

logger = logging.getLogger("peerassist.background")


async def reclaim_stale_verifications(session: AsyncSession) -> int:
    """Move tasks whose code expired long ago back to in_progress.

    The owner never confirmed, so the workers can ask again.
    """
    now = datetime.now(UTC)
    cutoff = now - timedelta(hours=settings.pending_verification_reclaim_hours)
    result = await session.execute(
        select(Task).where(
            Task.status == TaskStatus.pending_verification,
            Task.otp_expires_at != None,  # noqa: E711
            Task.otp_expires_at < cutoff,
        )
    )
    stale = result.scalars().all()

    reclaimed = 0
    for task in stale:
        tid = task.id
        # Guard on the same code so a fresh request in between wins
        res = await session.execute(
            update(Task)
            .where(
                Task.id == tid,
                Task.status == TaskStatus.pending_verification,
                Task.otp_code_hash == task.otp_code_hash,
            )
            .values(
                status=TaskStatus.in_progress,
                otp_code_hash=None,
                otp_expires_at=None,
                otp_issued_for=None,
                otp_issued_at=None,
                otp_attempts=0,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount:
            reclaimed += 1
            logger.info("Reclaimed task %s from stale pending verification", tid)

    if reclaimed:
        await session.commit()
    return reclaimed


async def background_loop(session_factory: sessionmaker) -> None:
    """Run background maintenance every ``background_interval_seconds``."""
    while True:
        try:
            async with session_factory() as session:
                reclaimed = await reclaim_stale_verifications(session)
                if reclaimed:
                    logger.info("BG: reclaimed=%d", reclaimed)
        except Exception:
            logger.exception("Background task error")
        await asyncio.sleep(settings.background_interval_seconds)
