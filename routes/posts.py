"""Timeline, post, comment and like routes."""

from __future__ import annotations

from flask import current_app, jsonify, request
from flask_login import login_required

from services import posts as post_service

from .base import acting_user, request_payload, require_int, views


@views.route("/api/posts", methods=["GET"])
@login_required
def timeline():
    user = acting_user()
    page = require_int(request.args.get("page", 1), field="page")
    per_page = current_app.config.get("FEED_PAGE_SIZE", 20)
    items = post_service.timeline(user, page=page, per_page=per_page)
    return jsonify({
        "page": page,
        "posts": [post.to_dict(viewer=user) for post in items],
    })


@views.route("/api/posts", methods=["POST"])
@login_required
def create_post():
    user = acting_user()
    post = post_service.create_post(user, request_payload().get("content"))
    return jsonify({"post": post.to_dict(viewer=user)}), 201


@views.route("/api/posts/<post_id>", methods=["DELETE"])
@login_required
def delete_post(post_id):
    post_service.delete_post(acting_user(), require_int(post_id, field="post_id"))
    return jsonify({"status": "deleted"})


@views.route("/api/posts/<post_id>/comments", methods=["POST"])
@login_required
def add_comment(post_id):
    comment = post_service.add_comment(
        acting_user(),
        require_int(post_id, field="post_id"),
        request_payload().get("content"),
    )
    return jsonify({"comment": comment.to_dict()}), 201


@views.route("/api/comments/<comment_id>", methods=["DELETE"])
@login_required
def delete_comment(comment_id):
    post_service.delete_comment(acting_user(), require_int(comment_id, field="comment_id"))
    return jsonify({"status": "deleted"})


@views.route("/api/posts/<post_id>/like", methods=["POST"])
@login_required
def like_post(post_id):
    user = acting_user()
    like = post_service.like_post(user, require_int(post_id, field="post_id"))
    return jsonify({"post_id": like.post_id, "liked": True}), 201


@views.route("/api/posts/<post_id>/like", methods=["DELETE"])
@login_required
def unlike_post(post_id):
    removed = post_service.unlike_post(acting_user(), require_int(post_id, field="post_id"))
    return jsonify({"post_id": int(post_id), "liked": False, "removed": removed})
