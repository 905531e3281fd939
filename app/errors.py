"""Structured error types for API responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class ErrorResponse:
    """Serializable error payload returned by API handlers."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ApiError(RuntimeError):
    """Exception carrying a structured error response and HTTP status."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Mapping[str, Any] | None = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = ErrorResponse(
            code=code, message=message, details=dict(details or {})
        )


def success_response(payload: dict[str, Any]) -> dict[str, Any]:
    """Wrap a successful response in the standard envelope."""
    return {"ok": True, "data": payload}


def error_response(error: ErrorResponse) -> dict[str, Any]:
    """Wrap an error response in the standard envelope."""
    return {"ok": False, "error": error.to_dict()}
