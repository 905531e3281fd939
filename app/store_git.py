"""Git helpers that version the data directory."""

from __future__ import annotations

from pathlib import Path

from dulwich import porcelain
from dulwich.repo import Repo

from app.errors import ApiError
from app.store_utils import _atomic_write


def _ensure_git_repo(data_root: Path) -> Repo:
    git_dir = data_root / ".git"
    try:
        if git_dir.exists():
            return Repo(data_root)
        return porcelain.init(data_root)
    except Exception as exc:
        raise ApiError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(data_root)},
            status_code=500,
        ) from exc


def _commit_change(repo: Repo, relative_path: Path, operation: str) -> str:
    repo.get_worktree().stage([str(relative_path)])
    commit_message = f"{operation}: {relative_path.as_posix()}"
    commit_sha = porcelain.commit(repo, message=commit_message)
    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)


def _rollback_change(
    repo: Repo | None,
    target_path: Path,
    relative_path: Path,
    original_content: str | None,
) -> None:
    if original_content is None:
        try:
            if target_path.exists():
                target_path.unlink()
        except OSError:
            pass
    else:
        _atomic_write(target_path, original_content)
    if repo is None:
        return
    try:
        repo.get_worktree().stage([str(relative_path)])
    except Exception:
        pass
