"""Input validation helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

from flask import current_app, has_app_context

# local@domain.tld in ASCII; domain labels may not be empty and the TLD is letters only
EMAIL_PATTERN = re.compile(r"\A[\w+\-.]+@[a-z\d\-]+(\.[a-z\d\-]+)*\.[a-z]+\Z", re.IGNORECASE | re.ASCII)


@dataclass
class ValidationError(ValueError):
    message: str
    field: str | None = None
    invalid: List[Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


def log_validation_error(err: ValidationError, *, context: str | None = None) -> None:
    if not has_app_context():
        return
    suffix = f" ({context})" if context else ""
    current_app.logger.warning(
        "Validation error%s: field=%s invalid=%s message=%s",
        suffix,
        err.field,
        err.invalid,
        err.message,
    )


def parse_positive_int(value: Any, *, field: str = "id", min_value: int = 1) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing {field}.", field=field, invalid=[value])
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}.", field=field, invalid=[value])
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}.", field=field, invalid=[value])
    if out < min_value:
        raise ValidationError(f"Invalid {field}.", field=field, invalid=[value])
    return out


def strip_text(value: Any) -> Any:
    """Strip strings; anything else is returned untouched for validation to reject."""
    return value.strip() if isinstance(value, str) else value


def normalize_email(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return value.strip().lower()


def is_valid_email(value: Any) -> bool:
    if not isinstance(value, str) or not value or len(value) > 255:
        return False
    return bool(EMAIL_PATTERN.match(value))


class ErrorCollector:
    """Accumulates field-level messages in declaration order."""

    def __init__(self) -> None:
        self.errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def presence(self, field: str, value: Any) -> bool:
        """Record blank values, and non-text values as invalid; True when the value is usable text."""
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add(field, "can't be blank")
            return False
        if not isinstance(value, str):
            self.add(field, "is invalid")
            return False
        return True

    def length(self, field: str, value: str | None, *, minimum: int | None = None, maximum: int | None = None) -> None:
        if value is None:
            return
        size = len(value)
        if minimum is not None and size < minimum:
            self.add(field, f"is too short (minimum is {minimum} characters)")
        if maximum is not None and size > maximum:
            self.add(field, f"is too long (maximum is {maximum} characters)")

    def __bool__(self) -> bool:
        return bool(self.errors)
