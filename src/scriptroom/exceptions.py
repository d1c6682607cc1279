"""Error taxonomy shared by the versioning engine and the HTTP layer.

Every error raised by the core derives from :class:`ScriptroomError` and
carries the HTTP status code the API layer reports for it.
"""

from __future__ import annotations


class ScriptroomError(Exception):
    """Base exception for all scenario editing errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(ScriptroomError, KeyError):
    """A scenario, line or checkpoint does not exist."""

    status_code = 404


class ConflictError(ScriptroomError):
    """A lock is missing or held by another user."""

    status_code = 409


class LockConflictError(ConflictError):
    """Raised when a lock is already held by a different user."""

    def __init__(self, message: str, *, holder_id: int) -> None:
        super().__init__(message)
        self.holder_id = holder_id


class InputValidationError(ScriptroomError, ValueError):
    """Request data was rejected before any state changed."""

    status_code = 400


class PersistenceError(ScriptroomError, RuntimeError):
    """The backing store failed to read or write data."""

    status_code = 500


__all__ = [
    "ScriptroomError",
    "NotFoundError",
    "ConflictError",
    "LockConflictError",
    "InputValidationError",
    "PersistenceError",
]
