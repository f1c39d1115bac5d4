"""Applications and selection: who wants a task and who the owner picks.

Capacity is enforced by the database, not by a read-then-write in Python.
``tasks.selected_count`` is bumped with a guarded UPDATE
(``selected_count < people_needed``) in the same transaction that flags the
application as selected, so concurrent accepts serialise on the task row and
at most ``people_needed`` of them can ever commit.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from peerassist.db_models import Task, TaskApplication, TaskStatus
from peerassist.errors import (
    AlreadySelected,
    CannotApplyToOwnTask,
    CapacityExceeded,
    NoWorkersSelected,
    NotAnApplicant,
    StateConflict,
    TaskNotFound,
    TaskNotOpen,
)
from peerassist.ids import application_id
from peerassist.notifications import dispatch_selection
from peerassist.services.tasks import get_application, get_owned_task, get_task_or_404, status_str

logger = logging.getLogger("peerassist.applications")


def _not_open(task: Task, action: str) -> TaskNotOpen:
    return TaskNotOpen(f"Task is {status_str(task.status)}, not open for {action}")


async def apply_for_task(session: AsyncSession, tid: str, applicant: str) -> dict:
    """Record ``applicant``'s interest in a task. Re-applying is a no-op."""
    task = await get_task_or_404(session, tid)
    if task.owner_email == applicant:
        raise CannotApplyToOwnTask()

    if await get_application(session, tid, applicant):
        return {"task_id": tid, "status": status_str(task.status), "already_applied": True}

    if task.status != TaskStatus.open:
        raise _not_open(task, "applications")

    # Atomic open-check; also keeps the display counter in step with the rows
    bump = await session.execute(
        update(Task)
        .where(Task.id == tid, Task.status == TaskStatus.open)
        .values(applicant_count=Task.applicant_count + 1, updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    if bump.rowcount == 0:
        await session.rollback()
        task = await get_task_or_404(session, tid)
        raise _not_open(task, "applications")

    session.add(TaskApplication(id=application_id(), task_id=tid, applicant_email=applicant))
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race against our own duplicate apply; the unique index kept one row
        await session.rollback()
        return {"task_id": tid, "status": TaskStatus.open.value, "already_applied": True}

    logger.info("%s applied for task %s", applicant, tid)
    return {"task_id": tid, "status": TaskStatus.open.value, "already_applied": False}


async def _raise_selection_failure(session: AsyncSession, tid: str, applicant: str) -> None:
    """Work out from fresh state why a guarded selection matched no rows."""
    task = await session.get(Task, tid)
    if not task:
        raise TaskNotFound()
    application = await get_application(session, tid, applicant)
    if application is None:
        raise NotAnApplicant()
    if application.selected:
        raise AlreadySelected(f"{applicant} is already selected for this task")
    if task.status != TaskStatus.open:
        raise _not_open(task, "selection")
    if task.selected_count >= task.people_needed:
        raise CapacityExceeded(
            f"Maximum number of people ({task.people_needed}) already selected for this task"
        )
    raise StateConflict("Task changed while selecting; try again")


async def accept_applicant(
    session: AsyncSession, tid: str, applicant: str, caller: str
) -> Task:
    """Owner selects ``applicant`` for the task, bounded by ``people_needed``."""
    task = await get_owned_task(session, tid, caller)

    application = await get_application(session, tid, applicant)
    if application is None:
        raise NotAnApplicant()
    if application.selected:
        raise AlreadySelected(f"{applicant} is already selected for this task")
    if task.status != TaskStatus.open:
        raise _not_open(task, "selection")

    now = datetime.now(UTC)

    # Claim a slot: the capacity check and the increment are one statement
    claim = await session.execute(
        update(Task)
        .where(
            Task.id == tid,
            Task.status == TaskStatus.open,
            Task.selected_count < Task.people_needed,
        )
        .values(selected_count=Task.selected_count + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if claim.rowcount == 0:
        await session.rollback()
        await _raise_selection_failure(session, tid, applicant)

    mark = await session.execute(
        update(TaskApplication)
        .where(
            TaskApplication.task_id == tid,
            TaskApplication.applicant_email == applicant,
            TaskApplication.selected == False,  # noqa: E712
        )
        .values(selected=True, selected_at=now)
        .execution_options(synchronize_session=False)
    )
    if mark.rowcount == 0:
        # Releases the slot claimed above
        await session.rollback()
        await _raise_selection_failure(session, tid, applicant)

    await session.commit()
    await session.refresh(task)
    await session.refresh(application)

    logger.info(
        "Task %s: %s selected %s (%d/%d)",
        tid,
        caller,
        applicant,
        task.selected_count,
        task.people_needed,
    )

    dispatch_selection(applicant, task.title)
    return task


async def start_task(session: AsyncSession, tid: str, caller: str) -> Task:
    """Owner closes applications and selection: open -> in_progress."""
    task = await get_owned_task(session, tid, caller)
    if task.status != TaskStatus.open:
        raise TaskNotOpen(f"Task is {status_str(task.status)}, can only start open tasks")

    result = await session.execute(
        update(Task)
        .where(Task.id == tid, Task.status == TaskStatus.open, Task.selected_count > 0)
        .values(status=TaskStatus.in_progress, updated_at=datetime.now(UTC))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        task = await get_task_or_404(session, tid)
        if task.status != TaskStatus.open:
            raise TaskNotOpen(f"Task is {status_str(task.status)}, can only start open tasks")
        raise NoWorkersSelected()

    await session.commit()
    await session.refresh(task)
    logger.info("Task %s started by %s with %d worker(s)", tid, caller, task.selected_count)
    return task
