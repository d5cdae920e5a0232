"""Profile routes for the signed-in user and other members."""

from __future__ import annotations

from flask import jsonify, session
from flask_login import current_user, login_required, logout_user

from services import accounts, friendships
from services.audit import record_audit_event

from .base import acting_user, request_payload, require_int, user_profile, views


@views.route("/api/me", methods=["GET"])
@login_required
def me():
    payload = user_profile(current_user, viewer=current_user)
    payload["has_requests"] = friendships.has_incoming_requests(current_user)
    return jsonify({"user": payload})


@views.route("/api/me", methods=["PATCH"])
@login_required
def update_me():
    data = request_payload()
    changes = {key: data[key] for key in accounts.EDITABLE_FIELDS if key in data}
    if "password" in changes and not current_user.check_password(data.get("current_password")):
        return jsonify({"error": "invalid", "errors": {"current_password": ["is invalid"]}}), 422
    user = accounts.update_profile(acting_user(), changes)
    record_audit_event("profile_updated", {"fields": sorted(changes)})
    return jsonify({"user": user_profile(user, viewer=user)})


@views.route("/api/me", methods=["DELETE"])
@login_required
def delete_me():
    user = acting_user()
    user_id, email = user.id, user.email
    counts = accounts.delete_user(user)
    logout_user()
    session.clear()
    record_audit_event("account_deleted", {"email": email, "user_id": user_id, "removed": counts})
    return jsonify({"status": "deleted", "removed": counts})


@views.route("/api/users/<user_id>")
@login_required
def show_user(user_id):
    user = accounts.get_user(require_int(user_id, field="user_id"))
    return jsonify({"user": user_profile(user, viewer=current_user)})
