from __future__ import annotations

from typing import Iterable, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules.

    ``errors`` holds the field-level messages; ``str(exc)`` is the summary.
    """

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a lookup by id finds no document."""


class ConflictError(DomainError):
    """Raised on a duplicate unique key or a stale concurrent write."""


class TimeSlotConflictError(ConflictError):
    """Raised when a new slot overlaps an existing slot on the same day."""
