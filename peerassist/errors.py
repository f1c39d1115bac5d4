"""Workflow errors.

Every error is an ``HTTPException`` so services can raise it directly and the
app-level handler renders it. ``code`` names the precise failure; the class
hierarchy gives the category (unauthenticated, unauthorized, not found,
invariant violation, state conflict).
"""

from __future__ import annotations

from fastapi import HTTPException


class WorkflowError(HTTPException):
    status_code = 400
    code = "InvalidRequest"
    default_detail = "Invalid request"

    def __init__(self, detail: str | None = None, headers: dict | None = None) -> None:
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


# --- Categories -------------------------------------------------------------


class Unauthenticated(WorkflowError):
    status_code = 401
    code = "Unauthenticated"
    default_detail = "Missing or invalid Authorization header"


class Unauthorized(WorkflowError):
    status_code = 403
    code = "Unauthorized"
    default_detail = "Not allowed"


class NotFound(WorkflowError):
    status_code = 404
    code = "NotFound"
    default_detail = "Not found"


class InvariantViolation(WorkflowError):
    status_code = 409
    code = "InvariantViolation"


class StateConflict(WorkflowError):
    status_code = 409
    code = "StateConflict"


# --- Unauthorized -----------------------------------------------------------


class NotOwner(Unauthorized):
    code = "NotOwner"
    default_detail = "Only the task owner can do this"


class NotSelected(Unauthorized):
    code = "NotSelected"
    default_detail = "You are not a selected worker for this task"


class CannotApplyToOwnTask(Unauthorized):
    code = "CannotApplyToOwnTask"
    default_detail = "You cannot apply to your own task"


class IdentityMismatch(Unauthorized):
    code = "IdentityMismatch"
    default_detail = "You can only act as yourself"


# --- NotFound ---------------------------------------------------------------


class TaskNotFound(NotFound):
    code = "TaskNotFound"
    default_detail = "Task not found"


class NotAnApplicant(NotFound):
    code = "NotAnApplicant"
    default_detail = "That user has not applied for this task"


# --- InvariantViolation -----------------------------------------------------


class CapacityExceeded(InvariantViolation):
    code = "CapacityExceeded"
    default_detail = "Maximum number of people already selected for this task"


class AlreadySelected(InvariantViolation):
    code = "AlreadySelected"
    default_detail = "Applicant is already selected"


# --- StateConflict ----------------------------------------------------------


class TaskNotOpen(StateConflict):
    code = "TaskNotOpen"
    default_detail = "Task is not open"


class NoWorkersSelected(StateConflict):
    code = "NoWorkersSelected"
    default_detail = "Select at least one applicant before starting the task"


class AlreadyCompleted(StateConflict):
    code = "AlreadyCompleted"
    default_detail = "Task is already completed"


class NoPendingVerification(StateConflict):
    code = "NoPendingVerification"
    default_detail = "No completion is awaiting verification for this task"


class CodeExpired(StateConflict):
    code = "CodeExpired"
    default_detail = "Verification code has expired; ask the worker to request completion again"


class CodeMismatch(StateConflict):
    code = "CodeMismatch"
    default_detail = "Invalid verification code"


class VerificationLocked(StateConflict):
    status_code = 429
    code = "VerificationLocked"
    default_detail = (
        "Too many failed attempts; ask the worker to request completion again"
    )


class AlreadyRegistered(StateConflict):
    code = "AlreadyRegistered"
    default_detail = "User already exists"
