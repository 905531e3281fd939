"""Persistence of user accounts in ``users.json``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from app.json_store import next_id, read_collection, write_collection

USERS_FILENAME = "users.json"


def load_users(data_root: Path) -> list[dict[str, Any]]:
    return read_collection(data_root, USERS_FILENAME)


def find_user_by_email(data_root: Path, email: str) -> dict[str, Any] | None:
    for user in load_users(data_root):
        if user.get("email") == email:
            return user
    return None


def add_user(data_root: Path, name: str, email: str, password_hash: str) -> dict[str, Any]:
    users = load_users(data_root)
    user = {
        "id": next_id(users),
        "name": name,
        "email": email,
        "password": password_hash,
    }
    users.append(user)
    write_collection(data_root, USERS_FILENAME, users, "add_user")
    return user


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """Strip the credential before a user record leaves the service."""
    return {key: value for key, value in user.items() if key != "password"}
