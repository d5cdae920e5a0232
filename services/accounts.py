"""Account lifecycle: registration, authentication, profile edits and deletion."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import AuditLog, Comment, Like, Post, User
from services import friendships
from services.errors import NotFoundError, RecordInvalid
from services.validation import normalize_email, strip_text
from utils.time import utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("first_name", "last_name", "email", "password")


def find_by_email(email: str | None) -> User | None:
    normalized = normalize_email(email)
    if not isinstance(normalized, str) or not normalized:
        return None
    return User.query.filter(User.email == normalized).first()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def _save(user: User) -> User:
    """Validate and commit; a lost race on the email index reads as a validation error."""
    user.validate()
    db.session.add(user)
    # Rollback expires the instance, so keep what was attempted.
    attempted_email, user_id = user.email, user.id
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        user.forget_password()
        if User.email_taken(attempted_email, exclude_id=user_id):
            raise RecordInvalid({"email": ["has already been taken"]})
        raise
    user.forget_password()
    return user


def register_user(*, email: Any, password: Any, first_name: Any, last_name: Any) -> User:
    user = User(
        email=strip_text(email),
        first_name=strip_text(first_name),
        last_name=strip_text(last_name),
    )
    user.password = password
    _save(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(email: str | None, password: str | None) -> User | None:
    user = find_by_email(email)
    if user is None or not user.check_password(password):
        return None
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_profile(user: User, changes: dict) -> User:
    for field in EDITABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "password":
            user.password = value
        elif field == "email":
            user.email = strip_text(value)
        else:
            setattr(user, field, strip_text(value))
    try:
        return _save(user)
    except RecordInvalid:
        db.session.rollback()
        user.forget_password()
        raise


def delete_user(user: User) -> dict[str, int]:
    """Delete ``user`` together with everything that only exists through them.

    Likes, comments (including those on the user's posts), posts and
    friendship edges in both directions are removed in one transaction; audit
    rows are kept with their user reference cleared. Any failure rolls the
    whole unit back so no partial cascade is ever committed.
    """
    user_id = user.id
    try:
        post_ids = select(Post.id).where(Post.user_id == user_id)
        counts = {
            "likes": Like.query.filter(
                (Like.user_id == user_id) | Like.post_id.in_(post_ids)
            ).delete(synchronize_session=False),
            "comments": Comment.query.filter(
                (Comment.user_id == user_id) | Comment.post_id.in_(post_ids)
            ).delete(synchronize_session=False),
            "posts": Post.query.filter(Post.user_id == user_id).delete(synchronize_session=False),
            "friendships": friendships.delete_edges_for([user_id]),
        }
        AuditLog.query.filter(AuditLog.user_id == user_id).update(
            {AuditLog.user_id: None}, synchronize_session=False
        )
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Deleting user %s failed; rolled back", user_id)
        raise
    db.session.expire_all()
    logger.info("Deleted user %s with dependents %s", user_id, counts)
    return counts
