"""
auth/errors.py -- Domain error taxonomy for the account access flows.

Every AccessError subclass carries a stable ``code``. The HTTP boundary maps
codes to status codes; nothing inspects message text.

StorageError is deliberately outside the AccessError tree: it represents an
infrastructure failure (connection loss, unexpected constraint) rather than an
expected outcome of a request.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class for expected, caller-recoverable account access failures."""

    code: str = "access_error"
    default_message: str = "Account access failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmailError(AccessError):
    code = "duplicate_email"
    default_message = "That email address is already registered."


class UserNotFoundError(AccessError):
    code = "user_not_found"
    default_message = "User not found."


class InvalidCredentialsError(AccessError):
    code = "invalid_credentials"
    default_message = "Incorrect password."


class EmailNotRegisteredError(AccessError):
    code = "email_not_registered"
    default_message = "That email address is not registered."


class InvalidInputError(AccessError):
    """Raised for empty or malformed input, e.g. an empty password given to the hasher."""

    code = "invalid_input"
    default_message = "Invalid input."


class InvalidRecoveryTokenError(AccessError):
    """The recovery token is unknown, already consumed, or past its expiry."""

    code = "invalid_recovery_token"
    default_message = "The recovery link is invalid or has expired."


class StorageError(Exception):
    """Opaque persistence failure. Raised by stores, never retried by the core."""
