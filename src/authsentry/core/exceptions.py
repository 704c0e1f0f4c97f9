from __future__ import annotations

"""Centralized, structured exception hierarchy for AuthSentry.

This module defines the hierarchy of custom exceptions raised by the
authentication security core. They carry a machine-readable `code` for
programmatic error handling and a human-readable `message` for logging and
user feedback.

The hierarchy is designed to:
- Provide clear, specific errors for each failure branch of login, session,
  rate-limiting and password-recovery operations.
- Map cleanly to HTTP status codes in whatever transport layer embeds the core.
- Offer a consistent structure for logging and monitoring.

Successful operations return values; failed operations raise one of these
classes. Nothing else escapes the public service operations: unexpected
exceptions are converted into `UnexpectedSecurityError`.
"""

from typing import Any, Dict, Final, Optional

__all__: Final = [
    "AuthSentryError",
    "ValidationError",
    "PasswordPolicyError",
    "UserUpdateError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "InvalidCurrentPasswordError",
    "PasswordChangeError",
    "RateLimitError",
    "RateLimitExceededError",
    "DailyLimitExceededError",
    "TokenError",
    "InvalidTokenError",
    "TokenExpiredError",
    "TokenRevokedError",
    "InvalidRefreshTokenError",
    "TokenGenerationError",
    "LogoutError",
    "UserNotFoundError",
    "PasswordResetError",
    "DatabaseError",
    "EmailServiceError",
    "UnexpectedSecurityError",
]


class AuthSentryError(Exception):
    """Base exception class for all custom errors in the security core.

    It enforces the presence of a `message` and a `code`, ensuring that all
    errors are structured and identifiable.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code for identifying
                    the type of error programmatically.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    # A concise, structured representation used by loggers.
    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Validation errors (typically map to 400 Bad Request)
# ---------------------------------------------------------------------------


class ValidationError(AuthSentryError):
    """Raised for malformed input, rejected before any side effect."""

    def __init__(self, message: str, code: str = "validation_error"):
        super().__init__(message, code)


class PasswordPolicyError(ValidationError):
    """Raised when a new password does not meet the configured policy."""

    def __init__(self, message: str, code: str = "password_policy_error"):
        super().__init__(message, code)


class UserUpdateError(ValidationError):
    """Raised by the user store when an update is rejected.

    Attributes:
        errors: Field name to error message mapping reported by the store.
    """

    def __init__(
        self,
        message: str = "User update rejected",
        errors: Optional[Dict[str, Any]] = None,
        code: str = "user_update_error",
    ):
        super().__init__(message, code)
        self.errors = dict(errors or {})


# ---------------------------------------------------------------------------
# Auth-related errors (typically map to 401 Unauthorized)
# ---------------------------------------------------------------------------


class AuthenticationError(AuthSentryError):
    """Raised for general authentication failures.

    This exception is the base for more specific authentication-related
    errors. It typically maps to a `401 Unauthorized` HTTP status code.
    """

    def __init__(self, message: str, code: str = "authentication_error"):
        super().__init__(message, code)


class InvalidCredentialsError(AuthenticationError):
    """Raised when user-provided credentials are invalid.

    To prevent user enumeration, the message is generic whether the
    username is unknown or the password is wrong.
    """

    def __init__(self, message: str = "Invalid username or password", code: str = "invalid_credentials"):
        super().__init__(message, code)


class InvalidCurrentPasswordError(AuthenticationError):
    """Raised when the current password given during a password change is wrong."""

    def __init__(self, message: str = "Current password is incorrect", code: str = "invalid_current_password"):
        super().__init__(message, code)


class PasswordChangeError(AuthenticationError):
    """Raised when a verified password change could not be applied."""

    def __init__(self, message: str = "Password change failed", code: str = "password_change_failed"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Abuse-prevention errors (typically map to 429 Too Many Requests)
# ---------------------------------------------------------------------------


class RateLimitError(AuthSentryError):
    """Base class for rate limiting related errors."""

    def __init__(self, message: str | None = None, code: str = "rate_limit_exceeded"):
        if message is None:
            message = "Too many attempts. Please try again later."
        super().__init__(message, code)


class RateLimitExceededError(RateLimitError):
    """Raised when an identifier or IP address is rate limited.

    Attributes:
        retry_after: Seconds until the caller may try again.
    """

    def __init__(self, retry_after: int = 0, message: str | None = None, code: str = "rate_limited"):
        super().__init__(message, code)
        self.retry_after = retry_after


class DailyLimitExceededError(RateLimitError):
    """Raised when an identity has used up its password reset requests for the day."""

    def __init__(self, message: str | None = None, code: str = "daily_limit_exceeded"):
        if message is None:
            message = "Daily password reset limit reached"
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Token errors
# ---------------------------------------------------------------------------


class TokenError(AuthenticationError):
    """Base class for token verification and lifecycle failures."""

    def __init__(self, message: str = "Token error", code: str = "token_error"):
        super().__init__(message, code)


class InvalidTokenError(TokenError):
    """Raised when a token is unknown, malformed or fails verification."""

    def __init__(self, message: str = "Invalid token", code: str = "invalid_token"):
        super().__init__(message, code)


class TokenExpiredError(TokenError):
    """Raised when a token is past its expiry."""

    def __init__(self, message: str = "Token has expired", code: str = "token_expired"):
        super().__init__(message, code)


class TokenRevokedError(TokenError):
    """Raised when a token has been consumed or explicitly revoked."""

    def __init__(self, message: str = "Token has been revoked", code: str = "token_revoked"):
        super().__init__(message, code)


class InvalidRefreshTokenError(TokenError):
    """Raised when a session refresh is attempted with an unusable refresh token."""

    def __init__(self, message: str = "Invalid refresh token", code: str = "invalid_refresh_token"):
        super().__init__(message, code)


class TokenGenerationError(TokenError):
    """Raised when access or refresh tokens could not be issued."""

    def __init__(self, message: str = "Token generation failed", code: str = "token_generation_failed"):
        super().__init__(message, code)


class LogoutError(TokenError):
    """Raised when a token could not be verified or revoked during logout."""

    def __init__(self, message: str = "Logout failed", code: str = "logout_failed"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Lookup / recovery errors
# ---------------------------------------------------------------------------


class UserNotFoundError(AuthSentryError):
    """Raised when a requested user is not found.

    This typically maps to a `404 Not Found` HTTP status code.
    """

    def __init__(self, message: str = "User not found", code: str = "user_not_found"):
        super().__init__(message, code)


class PasswordResetError(AuthenticationError):
    """Raised when a validated password reset could not be applied."""

    def __init__(self, message: str = "Password reset failed", code: str = "password_update_failed"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Infrastructure errors (typically map to 500 / 503)
# ---------------------------------------------------------------------------


class DatabaseError(AuthSentryError):
    """Raised for low-level database interaction errors.

    This exception wraps underlying driver errors, abstracting away
    implementation details.
    """

    def __init__(self, message: str, code: str = "database_error"):
        super().__init__(message, code)


class EmailServiceError(AuthSentryError):
    """Raised by mail adapters when a message could not be handed off."""

    def __init__(self, message: str, code: str = "email_service_error"):
        super().__init__(message, code)


class UnexpectedSecurityError(AuthSentryError):
    """Generic, safe error raised in place of any unexpected exception.

    The original exception is logged and chained as ``__cause__``; its
    details are never part of the message.
    """

    def __init__(self, message: str = "An unexpected error occurred", code: str = "unexpected_error"):
        super().__init__(message, code)
