"""Centralized JSON error handlers."""

from __future__ import annotations

from flask import current_app, jsonify

from extensions import db
from services.errors import InvalidTransition, NotFoundError, PermissionDenied, RecordInvalid
from services.validation import ValidationError


def _json_error(code: str, detail: str, status: int, **extra):
    payload = {"error": code, "detail": detail}
    payload.update(extra)
    return jsonify(payload), status


def register_error_handlers(app) -> None:
    """Register error handlers on the Flask app."""

    @app.errorhandler(RecordInvalid)
    def record_invalid(err):  # type: ignore[no-redef]
        return _json_error("invalid", err.full_messages(), 422, errors=err.errors)

    @app.errorhandler(ValidationError)
    def bad_input(err):  # type: ignore[no-redef]
        return _json_error("bad_request", err.message, 400, field=err.field)

    @app.errorhandler(NotFoundError)
    def missing_record(err):  # type: ignore[no-redef]
        return _json_error("not_found", str(err), 404)

    @app.errorhandler(PermissionDenied)
    def denied(err):  # type: ignore[no-redef]
        return _json_error("forbidden", str(err), 403)

    @app.errorhandler(InvalidTransition)
    def conflict(err):  # type: ignore[no-redef]
        return _json_error("conflict", str(err), 409)

    @app.errorhandler(404)
    def not_found(err):  # type: ignore[no-redef]
        return _json_error("not_found", "Resource not found.", 404)

    @app.errorhandler(405)
    def method_not_allowed(err):  # type: ignore[no-redef]
        return _json_error("method_not_allowed", "Method not allowed.", 405)

    @app.errorhandler(429)
    def rate_limited(err):  # type: ignore[no-redef]
        return _json_error("rate_limited", "Too many requests. Please slow down.", 429)

    @app.errorhandler(500)
    def internal(err):  # type: ignore[no-redef]
        db.session.rollback()
        current_app.logger.error("Unhandled server error: %s", err)
        return _json_error("server_error", "A server error occurred.", 500)
