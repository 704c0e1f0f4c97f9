"""Successful outcomes of orchestrator and password reset operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuthOutcome(str, Enum):
    LOGGED_OUT = "logged_out"
    EMAIL_QUEUED = "reset_email_sent"
    PASSWORD_RESET = "password_reset_successful"


@dataclass(frozen=True)
class AuthenticationResult:
    """Tokens issued by a successful login.

    ``captcha_required`` tells the caller the next attempt for this username
    or address should present a captcha; it does not fail the login.
    """

    user: Any
    access_token: str
    refresh_token: str
    captcha_required: bool = False


@dataclass(frozen=True)
class SessionRefreshResult:
    """A new access token; the refresh token is reused as is."""

    user: Any
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class ResetStats:
    active_reset_tokens: int
    total_reset_tokens: int
    revoked_tokens: int
    today_reset_attempts: int
    total_daily_attempts: int
