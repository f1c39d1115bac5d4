"""SQLModel table definitions for PeerAssist."""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel


class TaskStatus(str, enum.Enum):
    open = "open"
    in_progress = "in_progress"
    pending_verification = "pending_verification"
    completed = "completed"


class WorkType(str, enum.Enum):
    plumbing = "Plumbing"
    house_shifting = "House Shifting"
    carpentry = "Carpentry"
    cleaning = "Cleaning"
    electrical = "Electrical"
    painting = "Painting"
    gardening = "Gardening"
    tutoring = "Tutoring"
    computer_help = "Computer Help"
    other = "Other"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(primary_key=True)
    name: str
    mobile: str | None = None
    key_hash: str
    key_fingerprint: str = Field(index=True)
    completed_tasks: int = Field(default=0)
    created_at: datetime = Field(default_factory=_utcnow)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_status", "owner_email", "status"),
        CheckConstraint("selected_count <= people_needed", name="ck_tasks_capacity"),
    )

    id: str = Field(primary_key=True)
    owner_email: str = Field(foreign_key="users.email", index=True)
    title: str
    description: str
    task_date: date
    task_time: str
    pay_rate: float
    location: str
    work_type: WorkType = Field(default=WorkType.other, index=True)
    people_needed: int = Field(default=1, ge=1)
    status: TaskStatus = Field(default=TaskStatus.open, index=True)
    applicant_count: int = Field(default=0)
    selected_count: int = Field(default=0)
    # Pending completion code; all NULL while nothing awaits verification
    otp_code_hash: str | None = None
    otp_expires_at: datetime | None = Field(default=None, index=True)
    otp_issued_for: str | None = None
    otp_issued_at: datetime | None = None
    otp_attempts: int = Field(default=0)
    completed_at: datetime | None = None
    completed_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)


class TaskApplication(SQLModel, table=True):
    __tablename__ = "task_applications"
    __table_args__ = (
        Index("ix_task_applications_task_applicant", "task_id", "applicant_email", unique=True),
    )

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    applicant_email: str = Field(foreign_key="users.email", index=True)
    selected: bool = Field(default=False)
    applied_at: datetime = Field(default_factory=_utcnow)
    selected_at: datetime | None = None
