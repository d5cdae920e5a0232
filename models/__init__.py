"""SQLAlchemy models package for Odinbook.
Re-exports the shared `db` instance to avoid import loops and provides
convenient names for the model classes.

Usage:
    from models import db, User, Friendship, Post
"""
from __future__ import annotations

from extensions import db  # shared SQLAlchemy() instance

# Import models only after db exists to avoid circular imports
from .user import User, AuditLog  # type: ignore F401
from .friendship import Friendship, FriendshipStatus  # type: ignore F401
from .post import Post, Comment, Like  # type: ignore F401

__all__ = [
    "db",
    "User",
    "AuditLog",
    "Friendship",
    "FriendshipStatus",
    "Post",
    "Comment",
    "Like",
]
