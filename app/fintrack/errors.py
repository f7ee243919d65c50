from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Recoverable request failure rendered as `{"error": ...}`."""

    status_code = 400

    def __init__(self, message: Any, status_code: int | None = None) -> None:
        super().__init__(message if isinstance(message, str) else "Request failed")
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(ApiError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class Forbidden(ApiError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFound(ApiError):
    status_code = 404


class ValidationFailed(ApiError):
    """Carries the structured error list: [{"path": [...], "message": ...}, ...]."""

    status_code = 400

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(errors)
        self.errors = errors


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status_code == 403:
            app.logger.warning("Forbidden: %s request_id=%s", e.message, getattr(g, "request_id", None))
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        if e.code is not None and e.code >= 500:
            app.logger.error("HTTP %s (request_id=%s): %s", e.code, getattr(g, "request_id", None), e.description)
            return jsonify({"error": "Internal server error"}), e.code
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict[str, Any]:
    """The request's JSON object body; `{}` when absent, 400 when it is not an object."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ApiError("Request body must be a JSON object")
    return body
