"""Task lifecycle routes."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from peerassist.api.users import INVALID_BODY
from peerassist.auth import AuthUser
from peerassist.config import settings
from peerassist.content import parse_body, render_response, render_task
from peerassist.database import get_db_session
from peerassist.db_models import TaskStatus, User
from peerassist.errors import IdentityMismatch
from peerassist.models import (
    ApplyResponse,
    CompletionRequestedResponse,
    CompletionVerifiedResponse,
    ErrorResponse,
    TaskCreateRequest,
    TaskListResponse,
    TaskResponse,
    VerifyCompletionRequest,
)
from peerassist.rate_limit import limiter
from peerassist.services.applications import accept_applicant, apply_for_task, start_task
from peerassist.services.completion import request_completion, verify_completion
from peerassist.services.tasks import create_task
from peerassist.services.views import (
    get_task_with_applicants,
    list_applied_tasks,
    list_created_tasks,
    owner_view,
)

router = APIRouter()

_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _same_user(user: User, email: str) -> None:
    if email.strip().lower() != user.email:
        raise IdentityMismatch()


@router.post(
    "/v1/tasks",
    response_model=TaskResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def post_task(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Post a task. A markdown body becomes the description."""
    try:
        body = await parse_body(request)
        req = TaskCreateRequest(**body)
    except (ValidationError, ValueError, TypeError):
        return render_response(request, INVALID_BODY, status_code=400)

    task = await create_task(
        session,
        user.email,
        req.title,
        req.description,
        req.task_date,
        req.task_time,
        req.pay_rate,
        req.location,
        req.work_type,
        people_needed=req.people_needed,
    )
    return render_task(request, await owner_view(session, task), status_code=201)


@router.get("/v1/tasks/mine", response_model=TaskListResponse, responses=_ERRORS)
@limiter.limit(settings.rate_limit_read)
async def my_tasks(
    request: Request,
    user: User = AuthUser,
    session=Depends(get_db_session),
    role: Literal["owner", "applicant"] = Query("owner"),
    status: TaskStatus | None = None,
):
    """Tasks you posted (newest first) or applied to (oldest first)."""
    if role == "applicant":
        result = await list_applied_tasks(session, user.email, status=status)
    else:
        result = await list_created_tasks(session, user.email, status=status)
    return render_response(request, result)


@router.get("/v1/tasks/{task_id}", response_model=TaskResponse, responses=_ERRORS)
@limiter.limit(settings.rate_limit_read)
async def get_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Task details. The owner also sees applicants and any pending verification."""
    view = await get_task_with_applicants(session, task_id, user.email)
    return render_task(request, view)


@router.post("/v1/tasks/{task_id}/apply", response_model=ApplyResponse, responses=_ERRORS)
@limiter.limit(settings.rate_limit_write)
async def apply(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Apply for an open task. Applying again is harmless."""
    result = await apply_for_task(session, task_id, user.email)
    return render_response(
        request,
        ApplyResponse(**result),
        headers={"X-Task-Id": task_id, "X-Status": result["status"]},
    )


@router.post(
    "/v1/tasks/{task_id}/accept/{email}", response_model=TaskResponse, responses=_ERRORS
)
@limiter.limit(settings.rate_limit_write)
async def accept(
    request: Request,
    task_id: str,
    email: str,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Select an applicant, up to the task's people_needed."""
    task = await accept_applicant(session, task_id, email.strip().lower(), user.email)
    return render_task(request, await owner_view(session, task))


@router.post("/v1/tasks/{task_id}/start", response_model=TaskResponse, responses=_ERRORS)
@limiter.limit(settings.rate_limit_write)
async def start(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Close selection and mark the task in progress."""
    task = await start_task(session, task_id, user.email)
    return render_task(request, await owner_view(session, task))


@router.post(
    "/v1/tasks/{task_id}/end/{email}",
    response_model=CompletionRequestedResponse,
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit_write)
async def end(
    request: Request,
    task_id: str,
    email: str,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Selected worker marks the task done; the owner is emailed a code."""
    _same_user(user, email)
    result = await request_completion(session, task_id, user.email)
    return render_response(
        request,
        CompletionRequestedResponse(**result),
        headers={"X-Task-Id": task_id, "X-Status": result["status"]},
    )


@router.post(
    "/v1/validate-task-completion",
    response_model=CompletionVerifiedResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, **_ERRORS},
)
@limiter.limit(settings.rate_limit_verify)
async def validate_completion(
    request: Request, user: User = AuthUser, session=Depends(get_db_session)
):
    """Owner confirms completion with the emailed code."""
    try:
        body = await parse_body(request)
        req = VerifyCompletionRequest(**body)
    except (ValidationError, ValueError, TypeError):
        return render_response(request, INVALID_BODY, status_code=400)

    _same_user(user, req.email)
    result = await verify_completion(session, req.task_id, user.email, req.otp)
    return render_response(
        request,
        CompletionVerifiedResponse(**result),
        headers={"X-Task-Id": req.task_id, "X-Status": result["status"]},
    )
