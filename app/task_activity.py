"""Per-user activity log of task mutations."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Request

from app.errors import ApiError, success_response
from app.router import api_router
from app.user_scope import get_request_data_root, get_request_user_id

ACTIVITY_DIRNAME = "activity"


def _activity_log_path(data_root: Path, user_id: int) -> Path:
    return data_root / ACTIVITY_DIRNAME / f"{user_id}.log"


def _append_activity_log(data_root: Path, user_id: int, entry: dict[str, Any]) -> None:
    log_path = _activity_log_path(data_root, user_id)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(entry, sort_keys=True, separators=(",", ":"))
    with log_path.open("a", encoding="utf-8") as log_file:
        log_file.write(payload + "\n")
        log_file.flush()
        os.fsync(log_file.fileno())


def _build_activity_entry(
    operation: str,
    task_id: int,
    summary: str,
    commit_sha: str | None,
) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation,
        "taskId": task_id,
        "summary": summary,
        "commitSha": commit_sha,
    }


def _read_activity_entries(
    data_root: Path, user_id: int, since: datetime | None, limit: int
) -> list[dict[str, Any]]:
    log_path = _activity_log_path(data_root, user_id)
    if not log_path.exists():
        return []
    entries: list[dict[str, Any]] = []
    for line in log_path.read_text(encoding="utf-8").splitlines():
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if since:
            timestamp = entry.get("timestamp")
            try:
                entry_time = datetime.fromisoformat(timestamp)
            except (TypeError, ValueError):
                entry_time = None
            if entry_time and entry_time < since:
                continue
        entries.append(entry)
    return entries[-limit:]


@api_router.get("/activity")
def read_activity_log(request: Request) -> dict[str, Any]:
    """Read the caller's most recent activity entries."""
    params = request.query_params
    raw_limit = params.get("limit", "50")
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        limit = 0
    if limit <= 0:
        raise ApiError(
            "INVALID_TYPE",
            "limit must be a positive integer.",
            {"limit": str(raw_limit)},
        )

    since_value = params.get("since")
    since = None
    if since_value:
        try:
            since = datetime.fromisoformat(str(since_value))
        except ValueError:
            raise ApiError(
                "INVALID_DATE",
                "since must be ISO date-time.",
                {"since": since_value},
            )
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

    user_id = get_request_user_id(request)
    data_root = get_request_data_root(request)
    entries = _read_activity_entries(data_root, user_id, since, limit)
    return success_response({"entries": entries})
