"""Registration and login endpoints."""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Any

import bcrypt
from fastapi import Request

from app.errors import ApiError, success_response
from app.payload import _ensure_payload_dict, _reject_unknown_fields
from app.router import api_router
from app.task_fields import is_blank
from app.user_store import add_user, find_user_by_email, public_user
from app.user_scope import get_request_data_root

logger = logging.getLogger(__name__)


def _password_digest(password: str) -> bytes:
    # bcrypt reads at most 72 bytes, so long passwords are pre-hashed.
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_digest(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_digest(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


@api_router.post("/register")
def register(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Create an account; emails are unique as stored."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"name", "email", "password"})

    missing = [
        field for field in ("name", "email", "password") if is_blank(payload.get(field))
    ]
    if missing:
        raise ApiError(
            "MISSING_FIELDS",
            "Please fill in all fields.",
            {"fields": missing},
        )

    email = str(payload["email"]).strip()
    data_root = get_request_data_root(request)
    if find_user_by_email(data_root, email) is not None:
        raise ApiError(
            "EMAIL_TAKEN",
            "Email is already registered.",
            {"email": email},
            status_code=409,
        )

    user = add_user(
        data_root,
        name=str(payload["name"]).strip(),
        email=email,
        password_hash=hash_password(str(payload["password"])),
    )
    logger.info("Registered user %s", user["id"])
    return success_response(
        {
            "user": public_user(user),
            "message": "Registration successful! You can now log in.",
        }
    )


@api_router.post("/login")
def login(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Check credentials and return the account to use as the caller identity."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"email", "password"})

    email = str(payload.get("email") or "").strip()
    password = payload.get("password")
    data_root = get_request_data_root(request)
    user = find_user_by_email(data_root, email) if email else None
    if (
        user is None
        or not isinstance(password, str)
        or not verify_password(password, str(user.get("password", "")))
    ):
        logger.warning("Failed login for %r", email)
        raise ApiError(
            "INVALID_CREDENTIALS",
            "Invalid credentials",
            status_code=401,
        )
    return success_response({"user": public_user(user), "message": "Login successful!"})
