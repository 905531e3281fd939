"""FastAPI entrypoint for the task tracker service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import load_config
from app.errors import ApiError, ErrorResponse, error_response
from app.logging_setup import setup_logging
from app.routes import register_handlers
from app.user_scope import (
    AUTH_EXEMPT_PATHS,
    IDENTITY_EXEMPT_PATHS,
    SERVICE_TOKEN_HEADER,
    USER_ID_HEADER,
    normalize_user_id,
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = load_config()
        setup_logging(config.log_level)
        app.state.config = config
        app.state.data_path = config.data_path
        logger.info(
            "Serving tasks from %s (timezone %s)", config.data_path, config.timezone
        )
        yield

    app = FastAPI(lifespan=lifespan)

    @app.middleware("http")
    async def enforce_request_identity(request: Request, call_next):
        path = request.url.path
        if path in AUTH_EXEMPT_PATHS:
            return await call_next(request)

        config = getattr(request.app.state, "config", None)
        require_user_header = bool(
            getattr(config, "require_user_header", True)
        )
        service_token = getattr(config, "service_token", None)

        if service_token:
            supplied_token = request.headers.get(SERVICE_TOKEN_HEADER)
            if supplied_token != service_token:
                error = ErrorResponse(
                    code="AUTH_FORBIDDEN",
                    message="Invalid service token.",
                    details={"header": SERVICE_TOKEN_HEADER},
                )
                return JSONResponse(
                    status_code=403, content=error_response(error)
                )

        if require_user_header and path not in IDENTITY_EXEMPT_PATHS:
            raw_user_id = request.headers.get(USER_ID_HEADER)
            if raw_user_id is None:
                error = ErrorResponse(
                    code="AUTH_REQUIRED",
                    message="Please log in first.",
                    details={"header": USER_ID_HEADER},
                )
                return JSONResponse(
                    status_code=401, content=error_response(error)
                )
            try:
                request.state.user_id = normalize_user_id(raw_user_id)
            except ApiError as exc:
                return JSONResponse(
                    status_code=exc.status_code, content=error_response(exc.error)
                )

        return await call_next(request)

    @app.exception_handler(ApiError)
    def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=error_response(exc.error)
        )

    @app.get("/health", status_code=200)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    register_handlers(app)
    return app


app = create_app()
