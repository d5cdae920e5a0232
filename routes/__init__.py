"""Aggregate blueprint for Odinbook routes."""

from __future__ import annotations

from .base import views

# Register route modules (import order not critical but keeps sections grouped)
from . import (
    auth,           # noqa: F401
    users,          # noqa: F401
    friendships,    # noqa: F401
    posts,          # noqa: F401
)

__all__ = ["views"]
