"""Persistence of task records in ``tasks.json``."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from app.json_store import next_id, read_collection, write_collection
from app.task_fields import DEFAULT_PRIORITY, isoformat_utc

TASKS_FILENAME = "tasks.json"

# Fields a patch may never overwrite.
_IMMUTABLE_FIELDS = {"id", "userId", "createdAt"}


def get_tasks(data_root: Path) -> list[dict[str, Any]]:
    return read_collection(data_root, TASKS_FILENAME)


def get_user_tasks(data_root: Path, user_id: int) -> list[dict[str, Any]]:
    return [task for task in get_tasks(data_root) if _owner_id(task) == user_id]


def get_task(data_root: Path, task_id: int) -> dict[str, Any] | None:
    for task in get_tasks(data_root):
        if _task_id(task) == task_id:
            return task
    return None


def add_task(
    data_root: Path, fields: dict[str, Any], user_id: int, now: datetime
) -> tuple[dict[str, Any], str]:
    """Append a task with the next id and return it with the commit sha."""
    tasks = get_tasks(data_root)
    task = {
        "id": next_id(tasks),
        "userId": user_id,
        "createdAt": isoformat_utc(now),
        **{key: value for key, value in fields.items() if key not in _IMMUTABLE_FIELDS},
    }
    if not task.get("priority"):
        task["priority"] = DEFAULT_PRIORITY
    tasks.append(task)
    commit_sha = write_collection(data_root, TASKS_FILENAME, tasks, "add_task")
    return task, commit_sha


def update_task(
    data_root: Path, task_id: int, patch: dict[str, Any]
) -> tuple[dict[str, Any] | None, str | None]:
    """Merge ``patch`` into a task; returns ``(None, None)`` for unknown ids."""
    tasks = get_tasks(data_root)
    for index, task in enumerate(tasks):
        if _task_id(task) != task_id:
            continue
        updated = {
            **task,
            **{key: value for key, value in patch.items() if key not in _IMMUTABLE_FIELDS},
        }
        tasks[index] = updated
        commit_sha = write_collection(data_root, TASKS_FILENAME, tasks, "update_task")
        return updated, commit_sha
    return None, None


def delete_task(data_root: Path, task_id: int) -> dict[str, Any]:
    tasks = get_tasks(data_root)
    remaining = [task for task in tasks if _task_id(task) != task_id]
    if len(remaining) == len(tasks):
        return {"success": False}
    commit_sha = write_collection(data_root, TASKS_FILENAME, remaining, "delete_task")
    return {"success": True, "commitSha": commit_sha}


def _task_id(task: dict[str, Any]) -> int | None:
    try:
        return int(task.get("id"))
    except (TypeError, ValueError):
        return None


def _owner_id(task: dict[str, Any]) -> int | None:
    try:
        return int(task.get("userId"))
    except (TypeError, ValueError):
        return None
