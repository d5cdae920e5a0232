"""Shared exception types for the service layer."""

from __future__ import annotations


class AppError(Exception):
    """Base exception for application-level errors."""


class NotFoundError(AppError):
    """Raised when a requested resource cannot be located."""


class PermissionDenied(AppError):
    """Raised when the acting user may not touch the resource."""


class InvalidTransition(AppError):
    """Raised when a friendship edge cannot move to the requested state."""


class RecordInvalid(AppError):
    """A record failed validation.

    ``errors`` maps a field name to the list of messages for that field, e.g.
    ``{"email": ["is invalid"], "password": ["is too short (minimum is 7 characters)"]}``.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = {field: list(messages) for field, messages in errors.items()}
        super().__init__(self.full_messages())

    def full_messages(self) -> str:
        parts = []
        for field, messages in self.errors.items():
            label = field.replace("_", " ").capitalize()
            parts.extend(f"{label} {message}" for message in messages)
        return "; ".join(parts)
