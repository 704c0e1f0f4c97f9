"""Rate limit decision value objects.

A decision is not an error: ``CAPTCHA_REQUIRED`` is a soft signal the caller
carries forward while still attempting the login.
"""

from dataclasses import dataclass
from enum import Enum


class RateLimitStatus(str, Enum):
    ALLOWED = "allowed"
    CAPTCHA_REQUIRED = "captcha_required"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of `RateLimiter.check`.

    Attributes:
        status: Allowed, captcha required, or rate limited.
        retry_after: Seconds until the caller may retry; 0 unless rate limited.
    """

    status: RateLimitStatus
    retry_after: int = 0

    def __post_init__(self) -> None:
        if self.retry_after < 0:
            raise ValueError("retry_after cannot be negative")
        if self.status is not RateLimitStatus.RATE_LIMITED and self.retry_after:
            raise ValueError("retry_after is only meaningful for rate limited decisions")

    @classmethod
    def allowed(cls) -> "RateLimitDecision":
        return cls(RateLimitStatus.ALLOWED)

    @classmethod
    def captcha_required(cls) -> "RateLimitDecision":
        return cls(RateLimitStatus.CAPTCHA_REQUIRED)

    @classmethod
    def rate_limited(cls, retry_after: int) -> "RateLimitDecision":
        return cls(RateLimitStatus.RATE_LIMITED, max(0, int(retry_after)))

    @property
    def is_allowed(self) -> bool:
        return self.status is RateLimitStatus.ALLOWED

    @property
    def is_rate_limited(self) -> bool:
        return self.status is RateLimitStatus.RATE_LIMITED

    @property
    def requires_captcha(self) -> bool:
        return self.status is RateLimitStatus.CAPTCHA_REQUIRED


@dataclass(frozen=True)
class RateLimiterStats:
    """Snapshot of rate limiter state for dashboards."""

    active_blocks: int
    total_login_attempts: int
    recent_attempts: int
    blocked_ips: int
    blocked_users: int
