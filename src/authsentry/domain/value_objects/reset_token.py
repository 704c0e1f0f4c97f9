"""Reset Token Value Object for secure token management.

This value object encapsulates password reset token business rules: how a
token is generated, how long it lives and how it is shown in logs. Reset
tokens exist only in the memory of the password reset service.
"""

import secrets
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, ClassVar, Optional


@dataclass(frozen=True)
class ResetToken:
    """Password reset token value object.

    Security Features:
        - Generated from ``secrets`` (cryptographically strong, URL-safe)
        - Fixed time-to-live from creation
        - Immutable once created
        - Only an 8-character prefix is ever logged

    Attributes:
        token: Opaque random string sent to the user.
        user_id: Identifier of the user the token resets.
        email: Recipient the reset link was mailed to.
        username: Username of the user, for audit context.
        expires_at: Creation time plus the configured TTL (naive UTC).
        created_at: Creation time (naive UTC).
        ip_address: Address the reset was requested from.
    """

    token: str
    user_id: Any
    email: str
    expires_at: datetime
    created_at: datetime
    username: Optional[str] = None
    ip_address: Optional[str] = None

    DEFAULT_TOKEN_BYTES: ClassVar[int] = 32
    DEFAULT_TTL_HOURS: ClassVar[int] = 2

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("Token cannot be empty")
        if self.expires_at <= self.created_at:
            raise ValueError("Token must expire after it is created")

    @classmethod
    def generate(
        cls,
        *,
        user_id: Any,
        email: str,
        now: datetime,
        username: Optional[str] = None,
        ip_address: Optional[str] = None,
        ttl_hours: Optional[int] = None,
        token_bytes: Optional[int] = None,
    ) -> "ResetToken":
        """Generate a new token for a user.

        Args:
            user_id: Identifier of the user.
            email: Recipient address.
            now: Creation time (naive UTC).
            username: Username for audit context.
            ip_address: Requesting address.
            ttl_hours: Lifetime in hours (default: 2).
            token_bytes: Bytes of randomness (default: 32).

        Returns:
            ResetToken: New token expiring ``ttl_hours`` after ``now``.
        """
        value = secrets.token_urlsafe(token_bytes or cls.DEFAULT_TOKEN_BYTES)
        return cls(
            token=value,
            user_id=user_id,
            email=email,
            username=username,
            ip_address=ip_address,
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours or cls.DEFAULT_TTL_HOURS),
        )

    def is_expired(self, now: datetime) -> bool:
        """A token is expired once the clock reaches ``expires_at``."""
        return now >= self.expires_at

    def mask_for_logging(self) -> str:
        """Token with only the first 8 characters visible."""
        return f"{self.token[:8]}..."


@dataclass(frozen=True)
class DailyAttemptCounter:
    """Reset requests made by one identity on one calendar day.

    Rollover is by date equality, not by elapsed time: a counter from any
    other day counts as zero.
    """

    count: int
    day: date

    def count_for(self, today: date) -> int:
        return self.count if self.day == today else 0

    def increment(self, today: date) -> "DailyAttemptCounter":
        if self.day == today:
            return replace(self, count=self.count + 1)
        return DailyAttemptCounter(count=1, day=today)
