"""Shared Flask helpers: session guards, JSON envelopes and error mapping."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from ..users.model import Actor
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)


def current_actor() -> Actor:
    if "user_id" not in session:
        raise AuthenticationError("Not authorized, please log in")
    return Actor(
        user_id=int(session["user_id"]),
        role=Role(session.get("role")),
        branch_id=session.get("branch_id"),
        semester=session.get("semester"),
    )


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return fail("Not authorized, please log in", 401)
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return fail("Not authorized, please log in", 401)
        if session.get("role") != Role.ADMIN.value:
            return fail("Access restricted to administrators only", 403)
        return view(*args, **kwargs)

    return wrapper


def ok(data: Any = None, status: int = 200, *, message: Optional[str] = None):
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        if isinstance(data, list):
            body["count"] = len(data)
        body["data"] = data
    return jsonify(body), status


def fail(message: str, status: int, errors: Optional[list[str]] = None):
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_int(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def query_date(name: str):
    raw = request.args.get(name)
    return parse_iso_date(raw) if raw else None


def register_error_handlers(app: Flask) -> None:
    status_by_error = (
        (ValidationError, 400),
        (AuthenticationError, 401),
        (AuthorizationError, 403),
        (NotFoundError, 404),
        (ConflictError, 409),
    )

    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        for cls, status in status_by_error:
            if isinstance(e, cls):
                errors = e.errors if isinstance(e, ValidationError) else None
                return fail(str(e), status, errors)
        return fail(str(e), 400)

    @app.errorhandler(404)
    def handle_not_found(_e):
        return fail("Route not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(_e):
        return fail("Method not allowed", 405)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return fail(e.description or e.name, e.code or 500)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        if app.config.get("DEBUG"):
            return fail(f"Server error: {e}", 500)
        return fail("Server error", 500)
