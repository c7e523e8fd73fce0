"""
Domain errors raised by component methods.

Route handlers let these propagate; the API layer maps each class to an
HTTP status. The orchestration core never interprets them.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors caused by the request rather than the system."""
    pass


class NotFoundError(DomainError):
    """A referenced record does not exist."""
    pass


class OwnershipError(DomainError):
    """A record exists but belongs to someone else."""
    pass


class ConflictError(DomainError):
    """The change would collide with existing data."""
    pass


class AuthenticationError(DomainError):
    """Credentials or tokens were rejected."""
    pass


class InvalidGoalError(DomainError):
    """Goal data that cannot be tracked (e.g. a non-positive target)."""
    pass
