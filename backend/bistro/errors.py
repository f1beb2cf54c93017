# Overview: Service-layer exception taxonomy and the JSON error handlers that render it.

"""
Every business failure is raised as a ServiceError subclass carrying a
machine-readable code (the `error` field clients switch on), a human message,
an HTTP status and optional details. Routes never build error bodies by hand
for these; the handlers registered here do it in one place.
"""

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class ServiceError(Exception):
    """Base class for errors that map onto an API response."""

    status = 400
    code = "bad_request"

    def __init__(self, message: str | None = None, *, code: str | None = None,
                 details: dict | None = None, status: int | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        if status:
            self.status = status
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """400-level input problem."""
    code = "validation_failed"


def parse_id(value, field_name: str) -> int:
    """Record id from request input; non-integers are a 400, not a 500."""
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", code="invalid_id", details={"field": field_name})


class NotFoundError(ServiceError):
    status = 404
    code = "not_found"


class ConflictError(ServiceError):
    """409-level business rule conflict (duplicate code, record in use)."""
    status = 409
    code = "conflict"


class InvalidStateError(ServiceError):
    """Requested transition is not allowed from the record's current status."""
    code = "invalid_state"


class UnbalancedEntryError(ValidationError):
    code = "unbalanced_entry"

    def __init__(self, total_debit, total_credit):
        difference = abs(total_debit - total_credit)
        super().__init__(
            "Journal entry is not balanced",
            details={
                "total_debit": float(total_debit),
                "total_credit": float(total_credit),
                "difference": float(difference),
            },
        )


class AuthError(ServiceError):
    status = 401
    code = "unauthorized"


class PermissionDenied(ServiceError):
    status = 403
    code = "forbidden"


class DatabaseNotConfigured(ServiceError):
    status = 500
    code = "db_not_configured"

    def __init__(self):
        super().__init__("DATABASE_URL is not set")


def register_error_handlers(app) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        if exc.status >= 500:
            current_app.logger.error("Service failure: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "server_error", "message": "Internal server error"}), 500
