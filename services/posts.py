"""Posts, comments and likes, plus the friends timeline."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from extensions import db
from models import Comment, Like, Post, User
from services import friendships
from services.errors import NotFoundError, PermissionDenied
from services.validation import strip_text

logger = logging.getLogger(__name__)


def get_post(post_id: int) -> Post:
    post = db.session.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found.")
    return post


def create_post(user: User, content: Any) -> Post:
    post = Post(user_id=user.id, content=strip_text(content))
    post.validate()
    db.session.add(post)
    db.session.commit()
    logger.info("User %s created post %s", user.id, post.id)
    return post


def delete_post(user: User, post_id: int) -> None:
    post = get_post(post_id)
    if post.user_id != user.id:
        raise PermissionDenied("You can only delete your own posts.")
    db.session.delete(post)
    db.session.commit()
    logger.info("User %s deleted post %s", user.id, post_id)


def add_comment(user: User, post_id: int, content: Any) -> Comment:
    post = get_post(post_id)
    comment = Comment(user_id=user.id, post_id=post.id, content=strip_text(content))
    comment.validate()
    db.session.add(comment)
    db.session.commit()
    return comment


def delete_comment(user: User, comment_id: int) -> None:
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found.")
    if comment.user_id != user.id:
        raise PermissionDenied("You can only delete your own comments.")
    db.session.delete(comment)
    db.session.commit()


def like_post(user: User, post_id: int) -> Like:
    """Like a post; liking twice returns the existing like."""
    post = get_post(post_id)
    existing = Like.query.filter_by(user_id=user.id, post_id=post.id).first()
    if existing is not None:
        return existing
    like = Like(user=user, post=post)
    db.session.add(like)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return Like.query.filter_by(user_id=user.id, post_id=post.id).one()
    return like


def unlike_post(user: User, post_id: int) -> bool:
    post = get_post(post_id)
    removed = Like.query.filter_by(user_id=user.id, post_id=post.id).delete(synchronize_session=False)
    db.session.commit()
    db.session.expire(post, ["likes"])
    return bool(removed)


def posts_by(user: User) -> list[Post]:
    return user.posts.order_by(Post.created_at.desc(), Post.id.desc()).all()


def timeline(user: User, page: int = 1, per_page: int = 20) -> list[Post]:
    """Posts by ``user`` and their friends, newest first."""
    author_ids = friendships.friend_ids(user) | {user.id}
    page = max(page, 1)
    return (
        Post.query.filter(Post.user_id.in_(author_ids))
        .options(
            selectinload(Post.user),
            selectinload(Post.likes),
            selectinload(Post.comments).selectinload(Comment.user),
        )
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
