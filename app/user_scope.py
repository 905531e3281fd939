"""Request-scoped user identity and data directory helpers."""

from __future__ import annotations

from datetime import timezone, tzinfo
from pathlib import Path

from fastapi import Request

from app.errors import ApiError

USER_ID_HEADER = "X-Task-Tracker-User-Id"
SERVICE_TOKEN_HEADER = "X-Task-Tracker-Service-Token"
AUTH_EXEMPT_PATHS = {"/health"}
IDENTITY_EXEMPT_PATHS = AUTH_EXEMPT_PATHS | {"/register", "/login"}


def normalize_user_id(raw_user_id: object) -> int:
    """Normalize and validate a user id from request context."""
    if isinstance(raw_user_id, bool):
        raise ApiError(
            "INVALID_USER_ID",
            "User id must be a positive integer.",
            {"user_id": str(raw_user_id)},
            status_code=401,
        )
    if isinstance(raw_user_id, int):
        user_id = raw_user_id
    elif isinstance(raw_user_id, str):
        normalized = raw_user_id.strip()
        if not normalized:
            raise ApiError(
                "AUTH_REQUIRED",
                "Missing required user identity header.",
                {"header": USER_ID_HEADER},
                status_code=401,
            )
        if not normalized.isdigit():
            raise ApiError(
                "INVALID_USER_ID",
                "User id must be a positive integer.",
                {"user_id": raw_user_id},
                status_code=401,
            )
        user_id = int(normalized)
    else:
        raise ApiError(
            "INVALID_USER_ID",
            "User id must be a positive integer.",
            {"type": type(raw_user_id).__name__},
            status_code=401,
        )

    if user_id <= 0:
        raise ApiError(
            "INVALID_USER_ID",
            "User id must be a positive integer.",
            {"user_id": str(raw_user_id)},
            status_code=401,
        )
    return user_id


def get_request_user_id(request: Request) -> int:
    """Read and cache the normalized user id from request state/headers."""
    cached = getattr(request.state, "user_id", None)
    if cached is not None:
        normalized = normalize_user_id(cached)
        request.state.user_id = normalized
        return normalized

    raw_user_id = request.headers.get(USER_ID_HEADER)
    if raw_user_id is None:
        raise ApiError(
            "AUTH_REQUIRED",
            "Missing required user identity header.",
            {"header": USER_ID_HEADER},
            status_code=401,
        )

    normalized = normalize_user_id(raw_user_id)
    request.state.user_id = normalized
    return normalized


def get_request_data_root(request: Request) -> Path:
    """Resolve and create the data directory for a request."""
    config = getattr(request.app.state, "config", None)
    if config is not None and hasattr(config, "data_path"):
        data_root = Path(config.data_path)
    else:
        data_root = Path(request.app.state.data_path)
    data_root.mkdir(parents=True, exist_ok=True)
    return data_root


def get_request_timezone(request: Request) -> tzinfo:
    """Timezone that defines calendar days for due dates."""
    config = getattr(request.app.state, "config", None)
    configured = getattr(config, "timezone", None)
    return configured if configured is not None else timezone.utc
