"""Factory helpers for quickly seeding the test database."""
from __future__ import annotations

import itertools
from typing import Optional

from extensions import db
from models import Comment, Friendship, FriendshipStatus, Like, Post, User

_email_counter = itertools.count(1)
_post_counter = itertools.count(1)

DEFAULT_PASSWORD = "password"


def build_user(
    *,
    email: Optional[str] = None,
    first_name: Optional[str] = "Jonathan",
    last_name: Optional[str] = "Yiv",
    password: Optional[str] = DEFAULT_PASSWORD,
) -> User:
    """Return an unsaved user, like FactoryBot's ``build(:user)``."""
    user = User(
        email=email or f"example{_next_value(_email_counter)}@example.com",
        first_name=first_name,
        last_name=last_name,
    )
    user.password = password
    return user


def create_user(**kwargs) -> User:
    user = build_user(**kwargs)
    db.session.add(user)
    db.session.commit()
    return user


def create_post(*, user: Optional[User] = None, content: Optional[str] = None) -> Post:
    author = user or create_user()
    post = Post(user=author, content=content or f"Post number {_next_value(_post_counter)}")
    db.session.add(post)
    db.session.commit()
    return post


def create_comment(
    *,
    user: Optional[User] = None,
    post: Optional[Post] = None,
    content: str = "Woo! This is a test comment!",
) -> Comment:
    comment = Comment(user=user or create_user(), post=post or create_post(), content=content)
    db.session.add(comment)
    db.session.commit()
    return comment


def create_like(*, user: Optional[User] = None, post: Optional[Post] = None) -> Like:
    like = Like(user=user or create_user(), post=post or create_post())
    db.session.add(like)
    db.session.commit()
    return like


def create_friendship(
    *,
    requester: Optional[User] = None,
    requested: Optional[User] = None,
    accepted: bool = False,
) -> Friendship:
    friendship = Friendship(
        requester=requester or create_user(),
        requested=requested or create_user(),
        status=FriendshipStatus.ACCEPTED if accepted else FriendshipStatus.PENDING,
    )
    db.session.add(friendship)
    db.session.commit()
    return friendship


def _next_value(counter: itertools.count) -> int:
    return next(counter)


__all__ = [
    "DEFAULT_PASSWORD",
    "build_user",
    "create_user",
    "create_post",
    "create_comment",
    "create_like",
    "create_friendship",
]
