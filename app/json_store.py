"""Flat-file JSON collections committed to the data directory's git repo."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from app.errors import ApiError
from app.store_git import _commit_change, _ensure_git_repo, _rollback_change
from app.store_utils import _atomic_write

logger = logging.getLogger(__name__)


def read_collection(data_root: Path, filename: str) -> list[dict[str, Any]]:
    """Load every record of a collection; a missing or empty file is empty."""
    path = data_root / filename
    if not path.exists():
        return []
    content = path.read_text(encoding="utf-8")
    if not content.strip():
        return []
    try:
        records = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.error("Collection %s is not valid JSON: %s", path, exc)
        raise ApiError(
            "STORE_CORRUPT",
            "Stored data could not be read.",
            {"path": filename},
            status_code=500,
        ) from exc
    if not isinstance(records, list):
        logger.error("Collection %s is not a JSON array", path)
        raise ApiError(
            "STORE_CORRUPT",
            "Stored data could not be read.",
            {"path": filename},
            status_code=500,
        )
    return records


def write_collection(
    data_root: Path,
    filename: str,
    records: list[dict[str, Any]],
    operation: str,
) -> str:
    """Replace a collection on disk and commit it, returning the commit sha."""
    data_root.mkdir(parents=True, exist_ok=True)
    path = data_root / filename
    original = path.read_text(encoding="utf-8") if path.exists() else None

    repo = _ensure_git_repo(data_root)
    _atomic_write(path, json.dumps(records, indent=4) + "\n")
    relative_path = path.relative_to(data_root)
    try:
        commit_sha = _commit_change(repo, relative_path, operation)
    except Exception as exc:
        _rollback_change(repo, path, relative_path, original)
        logger.exception("Commit failed for %s; change rolled back", operation)
        raise ApiError(
            "GIT_ERROR",
            "Git commit failed; mutation rolled back.",
            {"path": filename, "operation": operation},
            status_code=500,
        ) from exc
    logger.debug("Committed %s as %s", operation, commit_sha)
    return commit_sha


def next_id(records: list[dict[str, Any]]) -> int:
    """Return ``max(existing ids) + 1``, or 1 for an empty collection."""
    ids = [int(record.get("id") or 0) for record in records]
    return max(ids, default=0) + 1
