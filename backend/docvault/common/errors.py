from __future__ import annotations

from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class NotFound(APIError):
    """Absent entity, or a denial deliberately disguised as absence."""

    def __init__(self, code: str = "NOT_FOUND", message: str = "Resource not found.", details: dict[str, Any] | None = None) -> None:
        super().__init__(404, code, message, details)


class PermissionDenied(APIError):
    def __init__(self, code: str = "FORBIDDEN", message: str = "Insufficient permissions.", details: dict[str, Any] | None = None) -> None:
        super().__init__(403, code, message, details)


class ValidationFailed(APIError):
    def __init__(self, code: str = "INVALID_PARAMETER", message: str = "Invalid request.", details: dict[str, Any] | None = None) -> None:
        super().__init__(400, code, message, details)


class Conflict(APIError):
    def __init__(self, code: str = "CONFLICT", message: str = "Conflicting request.", details: dict[str, Any] | None = None) -> None:
        super().__init__(409, code, message, details)


class Expired(APIError):
    def __init__(self, code: str = "EXPIRED", message: str = "Resource has expired.", details: dict[str, Any] | None = None) -> None:
        super().__init__(410, code, message, details)


class InvalidPassword(APIError):
    def __init__(self) -> None:
        super().__init__(401, "INVALID_SHARE_PASSWORD", "Invalid share password.")


class BatchLimitExceeded(ValidationFailed):
    def __init__(self, limit: int, size: int) -> None:
        super().__init__(
            "BATCH_LIMIT_EXCEEDED",
            f"Batch size must not exceed {limit} items.",
            {"limit": limit, "size": size},
        )


def error_payload(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):  # type: ignore[no-untyped-def]
        return jsonify(error_payload(error.code, error.message, error.details)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):  # type: ignore[no-untyped-def]
        return (
            jsonify(error_payload("HTTP_ERROR", error.description, {"status": error.code})),
            error.code or 500,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[no-untyped-def]
        app.logger.exception("Unhandled exception", exc_info=error)
        return jsonify(error_payload("INTERNAL_ERROR", "An unexpected error occurred.")), 500
