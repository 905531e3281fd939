"""Validation and status transitions for task writes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Mapping

from app.task_fields import (
    DEFAULT_PRIORITY,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    canonical_status,
    ensure_aware,
    is_blank,
    isoformat_utc,
    parse_timestamp,
)

MIN_DUE_LEAD_TIME = timedelta(seconds=60)


class ValidationErrorKind(str, Enum):
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_STATUS = "INVALID_STATUS"
    DUE_DATE_TOO_SOON = "DUE_DATE_TOO_SOON"
    MISSING_COMPLETION_DATE = "MISSING_COMPLETION_DATE"
    INVALID_DUE_DATE = "INVALID_DUE_DATE"


VALIDATION_MESSAGES = {
    ValidationErrorKind.MISSING_FIELDS: "Missing task details.",
    ValidationErrorKind.INVALID_STATUS: (
        "Status must be one of Pending, In Progress, Completed or Cancelled."
    ),
    ValidationErrorKind.DUE_DATE_TOO_SOON: (
        "Due date must be at least 1 minute after the current time."
    ),
    ValidationErrorKind.MISSING_COMPLETION_DATE: (
        "Completed tasks must have a completion date."
    ),
    ValidationErrorKind.INVALID_DUE_DATE: "Due date must be an ISO date-time.",
}


@dataclass(frozen=True)
class ValidationFailure:
    kind: ValidationErrorKind
    field: str | None = None

    @property
    def message(self) -> str:
        return VALIDATION_MESSAGES[self.kind]


@dataclass(frozen=True)
class NormalizedTask:
    """Task fields accepted by ``validate``, ready to be persisted."""

    name: str
    status: str
    priority: str
    due_date: str | None
    completed_date: str | None

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date,
            "completedDate": self.completed_date,
        }


def validate(
    payload: Mapping[str, Any],
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> NormalizedTask | ValidationFailure:
    """Check a create/update request and normalize its fields.

    Rules are applied in order: required fields, known status, then the
    date rules for the requested status. Completed tasks need a completion
    date and keep their due date as given; other tasks may omit the due
    date, but one that is supplied must be at least a minute ahead of
    ``now``. Priority is never restricted, only defaulted.
    """
    name = payload.get("name")
    raw_status = payload.get("status")
    if is_blank(name) or is_blank(raw_status):
        missing = "name" if is_blank(name) else "status"
        return ValidationFailure(ValidationErrorKind.MISSING_FIELDS, missing)

    status = canonical_status(raw_status)
    if status is None:
        return ValidationFailure(ValidationErrorKind.INVALID_STATUS, "status")

    due_date = payload.get("dueDate")
    due_date = None if is_blank(due_date) else due_date
    completed_date = payload.get("completedDate")

    if status != STATUS_COMPLETED:
        if due_date is not None:
            due = parse_timestamp(due_date, tz)
            if due is None:
                return ValidationFailure(
                    ValidationErrorKind.INVALID_DUE_DATE, "dueDate"
                )
            if due < ensure_aware(now, tz) + MIN_DUE_LEAD_TIME:
                return ValidationFailure(
                    ValidationErrorKind.DUE_DATE_TOO_SOON, "dueDate"
                )
        completed_date = None
    elif is_blank(completed_date):
        return ValidationFailure(
            ValidationErrorKind.MISSING_COMPLETION_DATE, "completedDate"
        )

    priority = payload.get("priority")
    if is_blank(priority):
        priority = DEFAULT_PRIORITY

    return NormalizedTask(
        name=str(name).strip(),
        status=status,
        priority=str(priority),
        due_date=due_date,
        completed_date=completed_date,
    )


def toggle_status(requested_status: Any, now: datetime) -> dict[str, Any]:
    """Checkbox transition between Completed and Pending."""
    if canonical_status(requested_status) == STATUS_COMPLETED:
        return {"status": STATUS_COMPLETED, "completedDate": isoformat_utc(now)}
    return {"status": STATUS_PENDING, "completedDate": None}


def cancel() -> dict[str, Any]:
    """Move any task to Cancelled, leaving its dates alone."""
    return {"status": STATUS_CANCELLED}
