"""Friend list and friend request routes."""

from __future__ import annotations

from flask import jsonify
from flask_login import login_required

from extensions import limiter
from services import accounts, friendships
from services.audit import record_audit_event

from .base import acting_user, limiter_key_user_or_ip, request_payload, require_int, user_summary, views


def _request_payload(friendship, viewer) -> dict:
    payload = friendship.to_dict()
    other = friendship.other(viewer)
    payload["user"] = user_summary(other) if other is not None else None
    return payload


@views.route("/api/friends")
@login_required
def list_friends():
    user = acting_user()
    friends = sorted(friendships.friends(user), key=lambda friend: (friend.last_name, friend.first_name, friend.id))
    return jsonify({"friends": [user_summary(friend) for friend in friends]})


@views.route("/api/friends/suggestions")
@login_required
def friend_suggestions():
    users = friendships.friend_suggestions(acting_user())
    return jsonify({"users": [user_summary(user) for user in users]})


@views.route("/api/friends/<user_id>", methods=["DELETE"])
@login_required
def unfriend(user_id):
    user = acting_user()
    other = accounts.get_user(require_int(user_id, field="user_id"))
    friendships.unfriend(user, other)
    record_audit_event("friend_removed", {"user_id": other.id})
    return jsonify({"status": "removed"})


@views.route("/api/friend-requests")
@login_required
def incoming_requests():
    user = acting_user()
    pending = friendships.incoming_requests(user)
    return jsonify({"requests": [_request_payload(edge, user) for edge in pending]})


@views.route("/api/friend-requests/outgoing")
@login_required
def outgoing_requests():
    user = acting_user()
    pending = friendships.outgoing_requests(user)
    return jsonify({"requests": [_request_payload(edge, user) for edge in pending]})


@views.route("/api/friend-requests", methods=["POST"])
@login_required
@limiter.limit("30 per minute", methods=["POST"], key_func=limiter_key_user_or_ip)
def send_request():
    user = acting_user()
    target_id = require_int(request_payload().get("user_id"), field="user_id")
    target = accounts.get_user(target_id)
    friendship = friendships.send_request(user, target)
    record_audit_event("friend_request_sent", {"friendship_id": friendship.id, "requested_id": target.id})
    return jsonify({"request": _request_payload(friendship, user)}), 201


@views.route("/api/friend-requests/<friendship_id>/accept", methods=["POST"])
@login_required
def accept_request(friendship_id):
    user = acting_user()
    friendship = friendships.accept_request(require_int(friendship_id, field="friendship_id"), user)
    record_audit_event("friend_request_accepted", {"friendship_id": friendship.id})
    return jsonify({"request": _request_payload(friendship, user)})


@views.route("/api/friend-requests/<friendship_id>", methods=["DELETE"])
@login_required
def decline_request(friendship_id):
    user = acting_user()
    edge_id = require_int(friendship_id, field="friendship_id")
    friendships.decline_request(edge_id, user)
    record_audit_event("friend_request_declined", {"friendship_id": edge_id})
    return jsonify({"status": "declined"})
