"""Pydantic models for request/response schemas."""

from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, Field, field_validator

from peerassist.db_models import WorkType

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


class RegisterRequest(BaseModel):
    email: str = Field(max_length=320, description="Email address; this is your identity")
    name: str = Field(min_length=1, max_length=200)
    mobile: str | None = Field(default=None, max_length=40)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class RegisterResponse(BaseModel):
    email: str
    api_key: str
    message: str = "Welcome to PeerAssist! Save your API key, it cannot be recovered."


class UserResponse(BaseModel):
    email: str
    name: str
    mobile: str | None = None
    completed_tasks: int = 0


class TaskCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=10_000)
    task_date: date = Field(description="Day the work happens, YYYY-MM-DD")
    task_time: str = Field(min_length=1, max_length=50, description="Start time, e.g. 14:00")
    pay_rate: float = Field(ge=0, le=100_000, description="Estimated pay per hour")
    location: str = Field(min_length=1, max_length=500)
    work_type: WorkType
    people_needed: int = Field(default=1, ge=1, le=100)


class VerifyCompletionRequest(BaseModel):
    task_id: str = Field(min_length=1, max_length=64)
    email: str = Field(max_length=320, description="Task owner's email (must be the caller)")
    otp: str = Field(min_length=1, max_length=16)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        return v.strip()


class ApplicantView(BaseModel):
    email: str
    applied_at: str | None = None
    selected: bool = False
    selected_at: str | None = None


class PendingVerificationView(BaseModel):
    issued_for: str
    issued_at: str | None = None
    expires_at: str | None = None
    attempts_left: int


class TaskResponse(BaseModel):
    task_id: str
    title: str
    description: str
    task_date: str
    task_time: str
    pay_rate: float
    location: str
    work_type: str
    people_needed: int
    owner_email: str
    status: str
    selected_count: int
    total_applicants: int
    limit_reached: bool
    created_at: str | None = None
    completed_at: str | None = None
    # Owner view only
    applicants: list[ApplicantView] | None = None
    pending_verification: PendingVerificationView | None = None
    # Non-owner view only
    has_applied: bool | None = None
    selected: bool | None = None


class ApplyResponse(BaseModel):
    task_id: str
    status: str
    already_applied: bool


class CompletionRequestedResponse(BaseModel):
    task_id: str
    status: str
    task_title: str
    task_owner: str
    expires_at: str
    message: str = "Task completion code sent to the task owner"


class CompletionVerifiedResponse(BaseModel):
    task_id: str
    status: str
    completed_by: str
    message: str = "Task completed successfully!"


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


class ErrorResponse(BaseModel):
    error: str
    code: str
