"""Authentication and account management routes."""

from __future__ import annotations

from flask import jsonify, session
from flask_login import current_user, login_required, login_user, logout_user

from extensions import generate_csrf, limiter
from services import accounts
from services.audit import record_audit_event
from services.validation import normalize_email

from .base import request_payload, user_profile, views


@views.route("/api/health")
def health():
    return jsonify({"status": "ok"})


@views.route("/api/auth/csrf")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@views.route("/api/auth/register", methods=["POST"])
@limiter.limit("3 per minute", methods=["POST"])
@limiter.limit("10 per hour", methods=["POST"])
def register():
    data = request_payload()
    user = accounts.register_user(
        email=data.get("email"),
        password=data.get("password"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )
    login_user(user, remember=False, fresh=True)
    record_audit_event("user_registered", {"email": user.email}, user_id=user.id)
    return jsonify({"user": user_profile(user, viewer=user)}), 201


@views.route("/api/auth/login", methods=["POST"])
@limiter.limit("10 per minute", methods=["POST"])
def login():
    data = request_payload()
    user = accounts.authenticate(data.get("email"), data.get("password") or "")
    if user is None:
        record_audit_event("login_failed", {"email": normalize_email(data.get("email"))})
        return jsonify({"error": "invalid_credentials", "detail": "Invalid email or password."}), 401

    login_user(user, remember=bool(data.get("remember")), fresh=True)
    record_audit_event("login", {"email": user.email}, user_id=user.id)
    return jsonify({"user": user_profile(user, viewer=user)})


@views.route("/api/auth/logout", methods=["POST"])
@login_required
def logout():
    record_audit_event("logout", {"email": current_user.email})
    logout_user()
    session.clear()
    return jsonify({"status": "signed_out"})
