from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Type, TypeVar

from ..core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

EMAIL_RE = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")
PHONE_RE = re.compile(r"^[0-9]{10}$")
HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_min_length(value: str, field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters long")
    return value


def require_max_length(value: Optional[str], field_name: str, max_len: int) -> Optional[str]:
    if value is not None and len(value) > max_len:
        raise ValidationError(f"{field_name} cannot exceed {max_len} characters")
    return value


def require_int_range(value, field_name: str, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < low or number > high:
        raise ValidationError(f"{field_name} must be between {low} and {high}")
    return number


def require_choice(value, enum_cls: Type[E], field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def optional_text(value) -> Optional[str]:
    """Trimmed text or None. JSON numbers are taken in their string form."""
    if value is None:
        return None
    return str(value).strip() or None


def optional_pattern(value, pattern: re.Pattern, field_name: str) -> Optional[str]:
    value = optional_text(value)
    if value is not None and not pattern.match(value):
        raise ValidationError(f"Please provide a valid {field_name}")
    return value


class FieldErrors:
    """Collects field-level messages so one write reports every problem.

    Usage::

        errors = FieldErrors()
        name = errors.check(require_non_empty, raw_name, "Name")
        errors.raise_if_any("Invalid branch")
    """

    def __init__(self) -> None:
        self.messages: list[str] = []

    def check(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationError as e:
            self.messages.extend(e.errors)
            return None

    def add(self, message: str) -> None:
        self.messages.append(message)

    def raise_if_any(self, summary: str) -> None:
        if self.messages:
            raise ValidationError(summary, self.messages)
