"""Domain value objects."""

from .identifier import BlockReason, IdentifierKind
from .outcomes import AuthenticationResult, AuthOutcome, ResetStats, SessionRefreshResult
from .rate_limit import RateLimitDecision, RateLimiterStats, RateLimitStatus
from .reset_token import DailyAttemptCounter, ResetToken

__all__ = [
    "AuthOutcome",
    "AuthenticationResult",
    "BlockReason",
    "DailyAttemptCounter",
    "IdentifierKind",
    "RateLimitDecision",
    "RateLimitStatus",
    "RateLimiterStats",
    "ResetStats",
    "ResetToken",
    "SessionRefreshResult",
]
