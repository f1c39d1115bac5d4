"""Initial schema: users, tasks, task_applications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Databases created with SQLModel's create_all are stamped at this revision
rather than migrated.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.Column("mobile", sa.VARCHAR(), nullable=True),
        sa.Column("key_hash", sa.VARCHAR(), nullable=False),
        sa.Column("key_fingerprint", sa.VARCHAR(), nullable=False),
        sa.Column("completed_tasks", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("email"),
    )
    op.create_index("ix_users_key_fingerprint", "users", ["key_fingerprint"])

    # Enum columns hold the member names
    op.create_table(
        "tasks",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("owner_email", sa.VARCHAR(), nullable=False),
        sa.Column("title", sa.VARCHAR(), nullable=False),
        sa.Column("description", sa.VARCHAR(), nullable=False),
        sa.Column("task_date", sa.DATE(), nullable=False),
        sa.Column("task_time", sa.VARCHAR(), nullable=False),
        sa.Column("pay_rate", sa.FLOAT(), nullable=False),
        sa.Column("location", sa.VARCHAR(), nullable=False),
        sa.Column("work_type", sa.VARCHAR(length=14), nullable=False, server_default="other"),
        sa.Column("people_needed", sa.INTEGER(), nullable=False, server_default="1"),
        sa.Column("status", sa.VARCHAR(length=20), nullable=False, server_default="open"),
        sa.Column("applicant_count", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("selected_count", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("otp_code_hash", sa.VARCHAR(), nullable=True),
        sa.Column("otp_expires_at", sa.DATETIME(), nullable=True),
        sa.Column("otp_issued_for", sa.VARCHAR(), nullable=True),
        sa.Column("otp_issued_at", sa.DATETIME(), nullable=True),
        sa.Column("otp_attempts", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DATETIME(), nullable=True),
        sa.Column("completed_by", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_email"], ["users.email"]),
        sa.CheckConstraint("selected_count <= people_needed", name="ck_tasks_capacity"),
    )
    op.create_index("ix_tasks_owner_email", "tasks", ["owner_email"])
    op.create_index("ix_tasks_work_type", "tasks", ["work_type"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_otp_expires_at", "tasks", ["otp_expires_at"])
    op.create_index("ix_tasks_created_at", "tasks", ["created_at"])
    op.create_index("ix_tasks_owner_status", "tasks", ["owner_email", "status"])

    op.create_table(
        "task_applications",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("applicant_email", sa.VARCHAR(), nullable=False),
        sa.Column("selected", sa.BOOLEAN(), nullable=False, server_default="0"),
        sa.Column("applied_at", sa.DATETIME(), nullable=False),
        sa.Column("selected_at", sa.DATETIME(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["applicant_email"], ["users.email"]),
    )
    op.create_index("ix_task_applications_task_id", "task_applications", ["task_id"])
    op.create_index(
        "ix_task_applications_applicant_email", "task_applications", ["applicant_email"]
    )
    op.create_index(
        "ix_task_applications_task_applicant",
        "task_applications",
        ["task_id", "applicant_email"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_table("task_applications")
    op.drop_table("tasks")
    op.drop_table("users")
