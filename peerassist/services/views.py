"""Read-side views of tasks: owner view, sanitized view, and task lists."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from peerassist.config import settings
from peerassist.db_models import Task, TaskApplication, TaskStatus
from peerassist.models import (
    ApplicantView,
    PendingVerificationView,
    TaskListResponse,
    TaskResponse,
)
from peerassist.services.tasks import get_application, get_task_or_404, iso, status_str


def _base_view(task: Task) -> dict:
    return {
        "task_id": task.id,
        "title": task.title,
        "description": task.description,
        "task_date": iso(task.task_date),
        "task_time": task.task_time,
        "pay_rate": task.pay_rate,
        "location": task.location,
        "work_type": status_str(task.work_type),
        "people_needed": task.people_needed,
        "owner_email": task.owner_email,
        "status": status_str(task.status),
        "selected_count": task.selected_count,
        "total_applicants": task.applicant_count,
        "limit_reached": task.selected_count >= task.people_needed,
        "created_at": iso(task.created_at),
        "completed_at": iso(task.completed_at),
    }


def _pending_view(task: Task) -> PendingVerificationView | None:
    if task.status != TaskStatus.pending_verification or not task.otp_issued_for:
        return None
    return PendingVerificationView(
        issued_for=task.otp_issued_for,
        issued_at=iso(task.otp_issued_at),
        expires_at=iso(task.otp_expires_at),
        attempts_left=max(settings.otp_max_attempts - task.otp_attempts, 0),
    )


async def _applications(session: AsyncSession, tid: str) -> list[TaskApplication]:
    result = await session.execute(
        select(TaskApplication)
        .where(TaskApplication.task_id == tid)
        .order_by(col(TaskApplication.applied_at), col(TaskApplication.id))
    )
    return list(result.scalars().all())


async def owner_view(session: AsyncSession, task: Task) -> TaskResponse:
    applications = await _applications(session, task.id)
    return TaskResponse(
        **_base_view(task),
        applicants=[
            ApplicantView(
                email=a.applicant_email,
                applied_at=iso(a.applied_at),
                selected=a.selected,
                selected_at=iso(a.selected_at),
            )
            for a in applications
        ],
        pending_verification=_pending_view(task),
    )


def public_view(task: Task, application: TaskApplication | None) -> TaskResponse:
    return TaskResponse(
        **_base_view(task),
        has_applied=application is not None,
        selected=bool(application and application.selected),
    )


async def get_task_with_applicants(
    session: AsyncSession, tid: str, caller: str
) -> TaskResponse:
    """Full view for the owner; anyone else never sees other applicants."""
    task = await get_task_or_404(session, tid)
    if task.owner_email == caller:
        return await owner_view(session, task)
    application = await get_application(session, tid, caller)
    return public_view(task, application)


async def list_created_tasks(
    session: AsyncSession, owner: str, status: TaskStatus | None = None
) -> TaskListResponse:
    query = select(Task).where(Task.owner_email == owner)
    if status is not None:
        query = query.where(Task.status == status)
    query = query.order_by(col(Task.created_at).desc(), col(Task.id))
    result = await session.execute(query)
    tasks = [TaskResponse(**_base_view(t)) for t in result.scalars().all()]
    return TaskListResponse(tasks=tasks, total=len(tasks))


async def list_applied_tasks(
    session: AsyncSession, applicant: str, status: TaskStatus | None = None
) -> TaskListResponse:
    query = (
        select(Task, TaskApplication)
        .join(TaskApplication, col(TaskApplication.task_id) == col(Task.id))
        .where(TaskApplication.applicant_email == applicant)
    )
    if status is not None:
        query = query.where(Task.status == status)
    query = query.order_by(col(TaskApplication.applied_at), col(TaskApplication.id))
    result = await session.execute(query)
    tasks = [public_view(task, application) for task, application in result.all()]
    return TaskListResponse(tasks=tasks, total=len(tasks))
