"""Route registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from app.router import api_router

# Import modules to register routes with the shared router.
from app import routes_auth, routes_tasks, task_activity

# Re-export endpoints for tests and direct imports.
from app.routes_auth import login, register
from app.routes_tasks import (
    cancel_task,
    create_task,
    edit_task,
    list_tasks,
    read_task,
    remove_task,
    set_task_status,
)
from app.task_activity import read_activity_log


def register_handlers(app: FastAPI) -> None:
    """Attach task tracker routes to the FastAPI application."""
    app.include_router(api_router)
