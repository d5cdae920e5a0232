"""Shared blueprint and helper utilities for Odinbook routes."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request
from flask_limiter.util import get_remote_address
from flask_login import current_user

from models import User
from services import friendships
from services.validation import log_validation_error, parse_positive_int, ValidationError

views = Blueprint("views", __name__)


def limiter_key_user_or_ip() -> str:
    """Use the authenticated user id when present; otherwise fall back to IP."""
    user_id = current_user.get_id() if current_user.is_authenticated else None
    if user_id:
        return f"user:{user_id}"
    addr = get_remote_address() or request.remote_addr or "unknown"
    return f"ip:{addr}"


def request_payload() -> dict[str, Any]:
    """Accept JSON bodies and classic form posts alike."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def require_int(value: Any, *, field: str) -> int:
    try:
        return parse_positive_int(value, field=field)
    except ValidationError as err:
        log_validation_error(err, context=request.endpoint)
        raise


def user_summary(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
    }


def user_profile(user: User, viewer: User | None = None) -> dict[str, Any]:
    payload = user_summary(user)
    payload["friend_count"] = len(friendships.friend_ids(user))
    payload["post_count"] = user.posts.count()
    if viewer is not None:
        payload["relationship"] = friendships.relationship_state(viewer, user)
        payload["pending_request_id"] = friendships.pending_request_id(viewer, user)
        if viewer.id == user.id:
            payload["email"] = user.email
    return payload


def acting_user() -> User:
    """The signed-in user as a real model instance rather than the login proxy."""
    return current_user._get_current_object()
