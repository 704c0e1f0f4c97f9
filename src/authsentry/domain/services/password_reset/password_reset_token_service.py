"""Password Reset Token Service.

This domain service owns the whole lifecycle of password reset tokens:
issuing them on request, validating them, consuming them exactly once on a
successful reset, explicit revocation, and an hourly sweep.

Tokens, per-identity daily request counters and the revoked-token set live
only in this object's memory. Every operation, the periodic sweep included,
runs while holding one `asyncio.Lock`, so all operations are totally ordered
and a token can never be consumed twice.

Security Note:
    The revoked set is cleared wholesale once it grows past its limit. This
    never re-enables a token: a token leaves the token map at the moment it
    is consumed or revoked, and expiry is checked on every validation.
"""

import asyncio
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Set

import structlog

from authsentry.core.clock import Clock, utcnow
from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings
from authsentry.core.exceptions import (
    DailyLimitExceededError,
    InvalidTokenError,
    PasswordPolicyError,
    PasswordResetError,
    RateLimitExceededError,
    TokenError,
    TokenExpiredError,
    TokenRevokedError,
    UnexpectedSecurityError,
    UserNotFoundError,
    UserUpdateError,
    ValidationError,
)
from authsentry.core.periodic import PeriodicTask
from authsentry.domain.interfaces.services import IMailer, IUserRepository
from authsentry.domain.security.audit_log import AuditLog
from authsentry.domain.services.authentication.password_policy import PasswordPolicyValidator
from authsentry.domain.services.rate_limiting.rate_limiter import RateLimiter
from authsentry.domain.value_objects.outcomes import AuthOutcome, ResetStats
from authsentry.domain.value_objects.reset_token import DailyAttemptCounter, ResetToken
from authsentry.domain.value_objects.security_events import SecurityEventType

logger = structlog.get_logger(__name__)

_EXPECTED_ERRORS = (
    ValidationError,
    UserNotFoundError,
    DailyLimitExceededError,
    RateLimitExceededError,
    TokenError,
    PasswordResetError,
)


class PasswordResetTokenService:
    """Service for issuing, validating and consuming password reset tokens.

    This service is responsible for:
    - Resolving the user from an email address or username
    - Enforcing the per-identity daily request quota and IP throttling
    - Generating secure tokens and handing reset links to the mailer
    - Single-use consumption of tokens on a successful reset
    - Auditing every request, reset and revocation

    Each request, reset and revocation writes exactly one audit event.
    """

    def __init__(
        self,
        users: IUserRepository,
        rate_limiter: RateLimiter,
        audit_log: AuditLog,
        mailer: IMailer,
        *,
        password_policy: Optional[PasswordPolicyValidator] = None,
        app_settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        """Initialize with required dependencies.

        Args:
            users: External user store
            rate_limiter: Login rate limiter, reused for IP throttling
            audit_log: Audit log for reset events
            mailer: Outbound mail capability
            password_policy: Rules for new passwords
            app_settings: Quotas, TTL and link template
            clock: Source of naive UTC timestamps
        """
        self._users = users
        self._rate_limiter = rate_limiter
        self._audit_log = audit_log
        self._mailer = mailer
        self._settings = app_settings or default_settings
        self._password_policy = password_policy or PasswordPolicyValidator(self._settings)
        self._clock = clock

        self._lock = asyncio.Lock()
        self._tokens: Dict[str, ResetToken] = {}
        self._daily: Dict[str, DailyAttemptCounter] = {}
        self._revoked: Set[str] = set()

    async def request(self, email_or_username: str, ip: str) -> AuthOutcome:
        """Issue a reset token and mail the reset link.

        A value containing ``"@"`` is looked up as an email address,
        anything else as a username.

        Args:
            email_or_username: Identity of the user asking for a reset
            ip: Client IP address

        Returns:
            AuthOutcome.EMAIL_QUEUED

        Raises:
            ValidationError: If an argument is empty
            UserNotFoundError: If no user matches
            DailyLimitExceededError: If the identity used up today's quota
            RateLimitExceededError: If the IP address is rate limited
            UnexpectedSecurityError: For any other failure

        Security Features:
            - Tokens from ``secrets`` with 256 bits of entropy by default
            - Quota counted per calendar day, not per rolling 24 hours
            - Mail delivery failures never reveal whether a user exists
        """
        async with self._lock:
            try:
                return await self._request(email_or_username, ip)
            except _EXPECTED_ERRORS:
                raise
            except Exception as e:
                await self._record_unexpected("request", e, ip)
                raise UnexpectedSecurityError() from e

    async def validate(self, token: str) -> ResetToken:
        """Check that a token can still be used.

        A revoked token is reported as revoked even after it left the token
        map. An expired token is removed from the map when found.

        Raises:
            TokenRevokedError: If the token was consumed or revoked
            InvalidTokenError: If the token is unknown
            TokenExpiredError: If the token is past its expiry
        """
        async with self._lock:
            return self._validate(token)

    async def reset(self, token: str, new_password: str, ip: str) -> AuthOutcome:
        """Consume a token and set the user's new password.

        The token is removed and revoked only after the user store accepted
        the new password, so a rejected password leaves the token usable.

        Args:
            token: Reset token from the mailed link
            new_password: The new password in plain text
            ip: Client IP address

        Returns:
            AuthOutcome.PASSWORD_RESET

        Raises:
            TokenRevokedError, InvalidTokenError, TokenExpiredError: If the
                token cannot be used
            PasswordPolicyError: If the new password breaks the policy
            UserNotFoundError: If the token's user no longer exists
            PasswordResetError: If the user store rejected the update
            UnexpectedSecurityError: For any other failure
        """
        async with self._lock:
            try:
                return await self._reset(token, new_password, ip)
            except _EXPECTED_ERRORS:
                raise
            except Exception as e:
                await self._record_unexpected("reset", e, ip)
                raise UnexpectedSecurityError() from e

    async def revoke(self, token: str) -> None:
        """Revoke a token out of band, e.g. on an administrator's request.

        Raises:
            ValidationError: If the token is empty
        """
        async with self._lock:
            if not token:
                await self._audit_failure(None, None, "invalid_input")
                raise ValidationError("Token must not be empty")

            reset_token = self._tokens.pop(token, None)
            self._revoked.add(token)

            user = None
            if reset_token is not None:
                user = {"id": reset_token.user_id, "username": reset_token.username}
            await self._audit_log.log(
                SecurityEventType.PASSWORD_RESET_REVOKED,
                user,
                {"token_prefix": token[:8], "was_active": reset_token is not None},
            )
            logger.info("Password reset token revoked", token_prefix=token[:8])

    async def cleanup(self) -> int:
        """Sweep expired tokens, old daily counters and an oversized revoked set.

        Daily counters are kept for today and yesterday only.

        Returns:
            int: Number of entries removed
        """
        async with self._lock:
            now = self._clock()
            yesterday = now.date() - timedelta(days=1)

            expired = [value for value, token in self._tokens.items() if token.is_expired(now)]
            for value in expired:
                del self._tokens[value]

            old_counters = [key for key, counter in self._daily.items() if counter.day < yesterday]
            for key in old_counters:
                del self._daily[key]

            cleared_revoked = 0
            if len(self._revoked) > self._settings.PASSWORD_RESET_REVOKED_SET_LIMIT:
                cleared_revoked = len(self._revoked)
                self._revoked.clear()

            removed = len(expired) + len(old_counters) + cleared_revoked
            if removed:
                logger.debug(
                    "Password reset cleanup removed expired entries",
                    expired_tokens=len(expired),
                    daily_counters=len(old_counters),
                    revoked_tokens=cleared_revoked,
                )
            return removed

    async def get_stats(self) -> ResetStats:
        async with self._lock:
            now = self._clock()
            today = now.date()
            return ResetStats(
                active_reset_tokens=sum(1 for token in self._tokens.values() if not token.is_expired(now)),
                total_reset_tokens=len(self._tokens),
                revoked_tokens=len(self._revoked),
                today_reset_attempts=sum(1 for counter in self._daily.values() if counter.day == today),
                total_daily_attempts=len(self._daily),
            )

    def cleanup_task(self) -> PeriodicTask:
        """Background sweep running `cleanup` on the configured interval."""
        return PeriodicTask(
            "password_reset_cleanup",
            self._settings.PASSWORD_RESET_CLEANUP_INTERVAL_SECONDS,
            self.cleanup,
        )

    async def _request(self, email_or_username: str, ip: str) -> AuthOutcome:
        if not email_or_username or not ip:
            await self._audit_failure(None, ip, "invalid_input")
            raise ValidationError("Email or username and IP address are required")

        if "@" in email_or_username:
            user = await self._users.get_by_email(email_or_username)
        else:
            user = await self._users.get_by_username(email_or_username)
        if user is None:
            logger.warning(
                "Password reset request failed",
                identity_prefix=email_or_username[:3],
                ip_address=ip,
                reason="user_not_found",
            )
            await self._audit_failure(None, ip, "user_not_found")
            raise UserNotFoundError()

        now = self._clock()
        today = now.date()
        quota_key = getattr(user, "email", None) or user.username
        counter = self._daily.get(quota_key)
        if counter is not None and counter.count_for(today) >= self._settings.PASSWORD_RESET_MAX_REQUESTS_PER_DAY:
            logger.warning(
                "Password reset request failed",
                user_id=user.id,
                ip_address=ip,
                reason="daily_limit_exceeded",
            )
            await self._audit_failure(user, ip, "daily_limit_exceeded")
            raise DailyLimitExceededError()

        decision = await self._rate_limiter.check(self._settings.PASSWORD_RESET_RATE_LIMIT_IDENTIFIER, ip)
        if decision.is_rate_limited:
            logger.warning(
                "Password reset request failed",
                user_id=user.id,
                ip_address=ip,
                reason="rate_limited",
                retry_after=decision.retry_after,
            )
            await self._audit_failure(user, ip, "rate_limited")
            raise RateLimitExceededError(retry_after=decision.retry_after)

        recipient = self._recipient_for(user)
        reset_token = ResetToken.generate(
            user_id=user.id,
            email=recipient,
            username=user.username,
            ip_address=ip,
            now=now,
            ttl_hours=self._settings.PASSWORD_RESET_TOKEN_TTL_HOURS,
            token_bytes=self._settings.PASSWORD_RESET_TOKEN_BYTES,
        )
        self._tokens[reset_token.token] = reset_token
        self._daily[quota_key] = (counter or DailyAttemptCounter(0, today)).increment(today)

        reset_url = self._settings.PASSWORD_RESET_URL_TEMPLATE.format(
            base_url=self._settings.APP_BASE_URL.rstrip("/"), token=reset_token.token
        )
        await self._send_mail(
            "password_reset",
            recipient,
            {
                "user_id": user.id,
                "username": user.username,
                "reset_url": reset_url,
                "expires_at": reset_token.expires_at.isoformat(),
            },
        )

        await self._audit_log.log(
            SecurityEventType.PASSWORD_RESET_REQUESTED,
            user,
            {"ip_address": ip, "email": recipient, "token_prefix": reset_token.token[:8]},
        )
        logger.info(
            "Password reset token issued",
            user_id=user.id,
            token=reset_token.mask_for_logging(),
            expires_at=reset_token.expires_at.isoformat(),
        )
        return AuthOutcome.EMAIL_QUEUED

    async def _reset(self, token: str, new_password: str, ip: str) -> AuthOutcome:
        try:
            reset_token = self._validate(token)
        except TokenError as e:
            await self._audit_failure(None, ip, e.code)
            raise

        user_ref = {"id": reset_token.user_id, "username": reset_token.username}
        try:
            self._password_policy.validate(new_password)
        except PasswordPolicyError as e:
            await self._audit_failure(user_ref, ip, e.code)
            raise

        user = await self._users.get_by_id(reset_token.user_id)
        if user is None:
            await self._audit_failure(user_ref, ip, "user_not_found")
            raise UserNotFoundError()

        try:
            updated_user = await self._users.update_user(user, {"password": new_password})
        except UserUpdateError as e:
            await self._audit_failure(user, ip, "password_update_failed", errors=e.errors)
            raise PasswordResetError() from e

        del self._tokens[token]
        self._revoked.add(token)

        await self._audit_log.log(
            SecurityEventType.PASSWORD_RESET_COMPLETED,
            updated_user,
            {"ip_address": ip, "email": reset_token.email},
        )
        await self._send_mail(
            "password_changed",
            reset_token.email,
            {"user_id": reset_token.user_id, "username": reset_token.username, "ip_address": ip},
        )
        logger.info(
            "Password reset completed",
            user_id=reset_token.user_id,
            token=reset_token.mask_for_logging(),
        )
        return AuthOutcome.PASSWORD_RESET

    def _validate(self, token: str) -> ResetToken:
        if token in self._revoked:
            raise TokenRevokedError()

        reset_token = self._tokens.get(token) if token else None
        if reset_token is None:
            raise InvalidTokenError()

        if reset_token.is_expired(self._clock()):
            del self._tokens[token]
            raise TokenExpiredError()
        return reset_token

    def _recipient_for(self, user: Any) -> str:
        email = getattr(user, "email", None)
        if email:
            return email
        return f"{user.username}@{self._settings.PASSWORD_RESET_FALLBACK_EMAIL_DOMAIN}"

    async def _send_mail(self, template: str, recipient: str, payload: Mapping[str, Any]) -> None:
        try:
            await self._mailer.send_mail(template, recipient, payload)
        except Exception as e:
            logger.error(
                "Failed to send password reset email",
                template=template,
                email_prefix=recipient[:3],
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        logger.info("Password reset email sent", template=template, email_prefix=recipient[:3])

    async def _audit_failure(self, user: Any, ip: Optional[str], reason: str, **extra: Any) -> None:
        metadata = {"ip_address": ip, "reason": reason}
        metadata.update(extra)
        await self._audit_log.log(SecurityEventType.PASSWORD_RESET_FAILED, user, metadata)

    async def _record_unexpected(self, operation: str, error: Exception, ip: Optional[str]) -> None:
        logger.exception(
            "Unexpected error in password reset",
            operation=operation,
            error_type=type(error).__name__,
        )
        await self._audit_failure(None, ip, "unexpected_error")
