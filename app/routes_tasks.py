"""Task endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Request

from app.errors import ApiError, success_response
from app.payload import _ensure_payload_dict, _reject_unknown_fields
from app.router import api_router
from app.task_activity import _append_activity_log, _build_activity_entry
from app.task_fields import today_string
from app.task_lifecycle import ValidationFailure, cancel, toggle_status, validate
from app.task_query import QueryParams, annotate_due_buckets, query
from app.task_store import add_task, delete_task, get_task, get_user_tasks, update_task
from app.user_scope import (
    get_request_data_root,
    get_request_timezone,
    get_request_user_id,
)

logger = logging.getLogger(__name__)

TASK_FIELDS = {"name", "status", "dueDate", "completedDate", "priority"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@api_router.get("/tasks")
def list_tasks(request: Request) -> dict[str, Any]:
    """List the caller's tasks filtered, searched and sorted by query params."""
    params = QueryParams.from_mapping(request.query_params)
    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    tz = get_request_timezone(request)
    now = _utcnow()

    tasks = query(get_user_tasks(data_root, user_id), params, now, tz)
    return success_response(
        {
            "tasks": annotate_due_buckets(tasks, now, tz),
            "filters": params.to_dict(),
            "today": today_string(now, tz),
        }
    )


@api_router.post("/tasks")
def create_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Validate and store a new task for the caller."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, TASK_FIELDS)

    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    now = _utcnow()
    normalized = _validated(payload, now, request)

    task, commit_sha = add_task(data_root, normalized, user_id, now)
    logger.info("User %s created task %s", user_id, task["id"])
    _record(data_root, user_id, "create_task", task["id"], "create task", commit_sha)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.get("/tasks/{task_id}")
def read_task(task_id: int, request: Request) -> dict[str, Any]:
    """Return one of the caller's tasks."""
    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    task = _owned_task(data_root, task_id, user_id)
    return success_response({"task": task})


@api_router.post("/tasks/{task_id}")
def edit_task(task_id: int, payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Replace the editable fields of a task after validation."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, TASK_FIELDS)

    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    _owned_task(data_root, task_id, user_id)
    normalized = _validated(payload, _utcnow(), request)

    task, commit_sha = _update(data_root, task_id, normalized)
    logger.info("User %s updated task %s", user_id, task_id)
    _record(data_root, user_id, "update_task", task_id, "update task", commit_sha)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.post("/tasks/{task_id}/status")
def set_task_status(
    task_id: int, payload: dict[str, Any], request: Request
) -> dict[str, Any]:
    """Checkbox toggle between Completed and Pending."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"status"})

    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    _owned_task(data_root, task_id, user_id)

    task, commit_sha = _update(
        data_root, task_id, toggle_status(payload.get("status"), _utcnow())
    )
    summary = f"mark task {task['status']}"
    _record(data_root, user_id, "set_task_status", task_id, summary, commit_sha)
    return success_response(
        {
            "task": task,
            "message": f"Task marked as {task['status']}",
            "completedDate": task.get("completedDate"),
            "commitSha": commit_sha,
        }
    )


@api_router.post("/tasks/{task_id}/cancel")
def cancel_task(task_id: int, request: Request) -> dict[str, Any]:
    """Move a task to Cancelled regardless of its current status."""
    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    _owned_task(data_root, task_id, user_id)

    task, commit_sha = _update(data_root, task_id, cancel())
    logger.info("User %s cancelled task %s", user_id, task_id)
    _record(data_root, user_id, "cancel_task", task_id, "cancel task", commit_sha)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.delete("/tasks/{task_id}")
def remove_task(task_id: int, request: Request) -> dict[str, Any]:
    """Delete one of the caller's tasks."""
    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    _owned_task(data_root, task_id, user_id)

    result = delete_task(data_root, task_id)
    if not result["success"]:
        raise ApiError(
            "DELETE_FAILED",
            "Failed to delete task.",
            {"id": task_id},
            status_code=500,
        )
    logger.info("User %s deleted task %s", user_id, task_id)
    _record(
        data_root, user_id, "delete_task", task_id, "delete task", result["commitSha"]
    )
    return success_response({"id": task_id, "commitSha": result["commitSha"]})


def _validated(
    payload: dict[str, Any], now: datetime, request: Request
) -> dict[str, Any]:
    result = validate(payload, now, get_request_timezone(request))
    if isinstance(result, ValidationFailure):
        raise ApiError(
            result.kind.value,
            result.message,
            {"field": result.field} if result.field else None,
        )
    return result.to_record()


def _owned_task(data_root: Path, task_id: int, user_id: int) -> dict[str, Any]:
    # Tasks owned by another user are reported as missing.
    task = get_task(data_root, task_id)
    if task is None or task.get("userId") != user_id:
        raise ApiError(
            "TASK_NOT_FOUND",
            "Task not found.",
            {"id": task_id},
            status_code=404,
        )
    return task


def _update(
    data_root: Path, task_id: int, patch: dict[str, Any]
) -> tuple[dict[str, Any], str]:
    task, commit_sha = update_task(data_root, task_id, patch)
    if task is None or commit_sha is None:
        raise ApiError(
            "TASK_NOT_FOUND",
            "Task not found.",
            {"id": task_id},
            status_code=404,
        )
    return task, commit_sha


def _record(
    data_root: Path,
    user_id: int,
    operation: str,
    task_id: int,
    summary: str,
    commit_sha: str | None,
) -> None:
    entry = _build_activity_entry(operation, task_id, summary, commit_sha)
    _append_activity_log(data_root, user_id, entry)
