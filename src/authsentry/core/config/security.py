"""Abuse-prevention, audit and credential-recovery settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class SecuritySettings(BaseSettings):
    """Defines thresholds for the login rate limiter, the security audit log
    and the password reset token service.

    The defaults are the production values; they are configuration constants,
    never derived from one another.

    Security Note:
        - Lowering the hard thresholds or lengthening the lockout trades
          availability for brute-force resistance; keep the captcha thresholds
          strictly below the hard thresholds so the captcha escalation step
          is reachable.
        - Reset tokens live only in process memory; restarting the process
          invalidates every outstanding reset link.
    """

    # Login rate limiter
    RATE_LIMIT_MAX_ATTEMPTS_PER_IP: int = Field(ge=1, default=10)
    RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME: int = Field(ge=1, default=5)
    RATE_LIMIT_CAPTCHA_IP_THRESHOLD: int = Field(ge=1, default=7)
    RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD: int = Field(ge=1, default=3)
    RATE_LIMIT_WINDOW_MINUTES: int = Field(ge=1, default=60)
    RATE_LIMIT_LOCKOUT_MINUTES: int = Field(ge=1, default=15)
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS: int = Field(ge=1, default=300)
    RATE_LIMIT_RECENT_ACTIVITY_SECONDS: int = Field(ge=1, default=300)

    # Security audit log
    AUDIT_BRUTE_FORCE_WINDOW_SECONDS: int = Field(ge=1, default=300)
    AUDIT_BRUTE_FORCE_THRESHOLD: int = Field(ge=1, default=5)
    AUDIT_DEFAULT_PAGE_SIZE: int = Field(ge=1, default=100)
    AUDIT_REPORT_TOP_N: int = Field(ge=1, default=10)

    # Password reset tokens
    PASSWORD_RESET_TOKEN_TTL_HOURS: int = Field(ge=1, default=2)
    PASSWORD_RESET_MAX_REQUESTS_PER_DAY: int = Field(ge=1, default=3)
    PASSWORD_RESET_TOKEN_BYTES: int = Field(ge=16, default=32)
    PASSWORD_RESET_REVOKED_SET_LIMIT: int = Field(ge=1, default=1000)
    PASSWORD_RESET_CLEANUP_INTERVAL_SECONDS: int = Field(ge=1, default=3600)
    PASSWORD_RESET_RATE_LIMIT_IDENTIFIER: str = "password_reset"
    PASSWORD_RESET_URL_TEMPLATE: str = "{base_url}/reset-password?token={token}"
    PASSWORD_RESET_FALLBACK_EMAIL_DOMAIN: str = "localhost"

    # Password policy applied to new passwords
    PASSWORD_MIN_LENGTH: int = Field(ge=1, default=8)
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_LOWERCASE: bool = True
    PASSWORD_REQUIRE_DIGIT: bool = True
    PASSWORD_REQUIRE_SPECIAL_CHAR: bool = True

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "SecuritySettings":
        """Rejects captcha thresholds that could never be reached."""
        if self.RATE_LIMIT_CAPTCHA_IP_THRESHOLD > self.RATE_LIMIT_MAX_ATTEMPTS_PER_IP:
            raise ValueError(
                "RATE_LIMIT_CAPTCHA_IP_THRESHOLD must not exceed RATE_LIMIT_MAX_ATTEMPTS_PER_IP"
            )
        if self.RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD > self.RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME:
            raise ValueError(
                "RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD must not exceed "
                "RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME"
            )
        return self
