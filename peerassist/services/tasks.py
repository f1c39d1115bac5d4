"""Task creation and lookup (SQLModel)."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from peerassist.db_models import Task, TaskApplication, WorkType
from peerassist.errors import NotOwner, TaskNotFound
from peerassist.ids import task_id as make_task_id

logger = logging.getLogger("peerassist.tasks")


def status_str(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; everything is stored in UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def iso(dt: datetime | date | None) -> str | None:
    if dt is None:
        return None
    if isinstance(dt, datetime):
        return as_utc(dt).isoformat()
    return dt.isoformat()


async def create_task(
    session: AsyncSession,
    owner_email: str,
    title: str,
    description: str,
    task_date: date,
    task_time: str,
    pay_rate: float,
    location: str,
    work_type: WorkType,
    people_needed: int = 1,
) -> Task:
    """Create an open task owned by ``owner_email``."""
    task = Task(
        id=make_task_id(),
        owner_email=owner_email,
        title=title,
        description=description,
        task_date=task_date,
        task_time=task_time,
        pay_rate=pay_rate,
        location=location,
        work_type=work_type,
        people_needed=people_needed,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)

    logger.info(
        "Task %s created by %s (people_needed=%d)", task.id, owner_email, people_needed
    )
    return task


async def get_task_or_404(session: AsyncSession, tid: str) -> Task:
    task = await session.get(Task, tid)
    if not task:
        raise TaskNotFound()
    return task


async def get_owned_task(session: AsyncSession, tid: str, caller: str) -> Task:
    task = await get_task_or_404(session, tid)
    if task.owner_email != caller:
        raise NotOwner()
    return task


async def get_application(
    session: AsyncSession, tid: str, email: str
) -> TaskApplication | None:
    result = await session.execute(
        select(TaskApplication).where(
            TaskApplication.task_id == tid,
            TaskApplication.applicant_email == email,
        )
    )
    return result.scalar_one_or_none()
