"""
hlt.errors — Typed Error Taxonomy
==================================

Every service operation either returns its payload or raises one of these.
The API installs a single handler that renders ``{"error": message}`` with
the class's ``status_code``.
"""

from __future__ import annotations


class HLTError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(HLTError):
    """No principal, or the credential could not be resolved."""

    status_code = 401


class ForbiddenError(HLTError):
    """Authenticated, but lacking the role or ownership the operation needs."""

    status_code = 403


class NotFoundError(HLTError):
    """A referenced entity does not exist."""

    status_code = 404


class ConflictError(HLTError):
    """A uniqueness or state invariant would be violated."""

    status_code = 409


class ConcurrencyError(ConflictError):
    """Optimistic write kept losing to concurrent writers."""


class ValidationError(HLTError):
    """A required field is missing or malformed."""

    status_code = 400
