"""Command-line launcher for the task tracker service."""

from __future__ import annotations

import os

import uvicorn

DEFAULT_PROCESS_HOST = "127.0.0.1"
DEFAULT_PROCESS_PORT = "3000"


def main() -> None:
    process_host = os.getenv("PROCESS_HOST", DEFAULT_PROCESS_HOST).strip() or DEFAULT_PROCESS_HOST
    process_port = os.getenv("PROCESS_PORT", DEFAULT_PROCESS_PORT).strip() or DEFAULT_PROCESS_PORT
    # app.main configures logging itself once the lifespan starts.
    uvicorn.run("app.main:app", host=process_host, port=int(process_port), log_config=None)


if __name__ == "__main__":
    main()
