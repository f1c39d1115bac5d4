"""Completion workflow: a selected worker asks, the owner confirms with a code.

request_completion issues a fresh one-time code (replacing any pending one),
moves the task to pending_verification and mails the code to the owner.
verify_completion checks and consumes the code in a single guarded UPDATE, so a
code can complete a task at most once.

Only a SHA-256 digest of the code, salted with the task id, is stored.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from peerassist.config import settings
from peerassist.db_models import Task, TaskApplication, TaskStatus, User
from peerassist.errors import (
    AlreadyCompleted,
    CodeExpired,
    CodeMismatch,
    NoPendingVerification,
    NotSelected,
    StateConflict,
    VerificationLocked,
)
from peerassist.ids import otp_code
from peerassist.notifications import dispatch_code
from peerassist.services.tasks import (
    as_utc,
    get_application,
    get_owned_task,
    get_task_or_404,
    iso,
)

logger = logging.getLogger("peerassist.completion")

# Values that clear the pending code
_NO_PENDING_CODE = {
    "otp_code_hash": None,
    "otp_expires_at": None,
    "otp_issued_for": None,
    "otp_issued_at": None,
    "otp_attempts": 0,
}


def code_digest(tid: str, code: str) -> str:
    return hashlib.sha256(f"{tid}:{code}".encode()).hexdigest()


async def request_completion(session: AsyncSession, tid: str, worker: str) -> dict:
    """Selected worker signals the task is done; the owner gets a code."""
    task = await get_task_or_404(session, tid)

    application = await get_application(session, tid, worker)
    if application is None or not application.selected:
        raise NotSelected()
    if task.status == TaskStatus.completed:
        raise AlreadyCompleted()

    code = otp_code(settings.otp_digits)
    now = datetime.now(UTC)
    expires_at = now + timedelta(minutes=settings.otp_ttl_minutes)

    is_selected = (
        select(TaskApplication.id)
        .where(
            TaskApplication.task_id == tid,
            TaskApplication.applicant_email == worker,
            TaskApplication.selected == True,  # noqa: E712
        )
        .exists()
    )

    # Status change and code storage in one statement; a re-request overwrites
    result = await session.execute(
        update(Task)
        .where(Task.id == tid, Task.status != TaskStatus.completed, is_selected)
        .values(
            status=TaskStatus.pending_verification,
            otp_code_hash=code_digest(tid, code),
            otp_expires_at=expires_at,
            otp_issued_for=worker,
            otp_issued_at=now,
            otp_attempts=0,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Selection is irreversible, so completion is the only thing that can race us
        await session.rollback()
        await get_task_or_404(session, tid)
        raise AlreadyCompleted()

    await session.commit()
    await session.refresh(task)

    logger.info("Task %s: completion requested by %s, code issued", tid, worker)

    dispatch_code(task.owner_email, code, task.title)

    return {
        "task_id": task.id,
        "status": TaskStatus.pending_verification.value,
        "task_title": task.title,
        "task_owner": task.owner_email,
        "expires_at": iso(expires_at),
    }


async def verify_completion(session: AsyncSession, tid: str, owner: str, code: str) -> dict:
    """Owner confirms completion with the code they received."""
    await get_owned_task(session, tid, owner)

    now = datetime.now(UTC)
    digest = code_digest(tid, code)

    # Check and consume the code atomically
    result = await session.execute(
        update(Task)
        .where(
            Task.id == tid,
            Task.status == TaskStatus.pending_verification,
            Task.otp_code_hash == digest,
            Task.otp_expires_at > now,
            Task.otp_attempts < settings.otp_max_attempts,
        )
        .values(
            status=TaskStatus.completed,
            completed_at=now,
            completed_by=Task.otp_issued_for,
            updated_at=now,
            **_NO_PENDING_CODE,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        await _raise_verification_failure(session, tid, digest, now)

    task = await session.get(Task, tid, populate_existing=True)
    if task.completed_by:
        await session.execute(
            update(User)
            .where(User.email == task.completed_by)
            .values(completed_tasks=User.completed_tasks + 1)
            .execution_options(synchronize_session=False)
        )
    await session.commit()

    logger.info("Task %s completed (worker %s, verified by %s)", tid, task.completed_by, owner)
    return {
        "task_id": task.id,
        "status": TaskStatus.completed.value,
        "completed_by": task.completed_by,
    }


async def _raise_verification_failure(
    session: AsyncSession, tid: str, digest: str, now: datetime
) -> None:
    """Explain a failed verification. A wrong code costs one attempt."""
    task = await get_task_or_404(session, tid)

    if task.status != TaskStatus.pending_verification or task.otp_code_hash is None:
        raise NoPendingVerification()
    if task.otp_attempts >= settings.otp_max_attempts:
        raise VerificationLocked()
    if as_utc(task.otp_expires_at) <= now:
        raise CodeExpired()
    if secrets.compare_digest(task.otp_code_hash, digest):
        raise StateConflict("Verification state changed; try again")

    # Only count against the code that was actually checked
    pending_hash = task.otp_code_hash
    await session.execute(
        update(Task)
        .where(Task.id == tid, Task.otp_code_hash == pending_hash)
        .values(otp_attempts=Task.otp_attempts + 1)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    attempts_left = max(settings.otp_max_attempts - task.otp_attempts - 1, 0)
    logger.info("Task %s: wrong completion code (%d attempt(s) left)", tid, attempts_left)
    raise CodeMismatch(f"Invalid verification code ({attempts_left} attempt(s) left)")
