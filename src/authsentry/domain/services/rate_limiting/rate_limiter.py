"""Persistent login rate limiter.

This domain service counts failed logins per IP address and per username in
sliding-window counters stored in the database, escalates from captcha to
lockout as the counts grow, and keeps explicit block records that outrank
any counter. Limits survive process restarts because all state lives in the
relational store.

Thresholds (defaults, all configurable):
    - 10 failures per IP address or 5 per username: rate limited
    - 7 failures per IP address or 3 per username: captcha required
    - 60-minute window, 15-minute lockout and default manual block

Concurrency Note:
    `check` and `record_failure` are separate calls and are not transactional
    together. Concurrent failures for the same identifier can all pass
    `check` before any of them is recorded, so the enforced limit is a soft
    bound that may be exceeded by the number of in-flight requests. Each
    counter update is itself a single read-modify-write.
"""

import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

import structlog

from authsentry.core.clock import Clock, utcnow
from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings
from authsentry.core.exceptions import ValidationError
from authsentry.core.periodic import PeriodicTask
from authsentry.domain.entities.active_block import ActiveBlock
from authsentry.domain.entities.login_attempt import IDENTIFIER_MAX_LENGTH
from authsentry.domain.interfaces.repositories import (
    IActiveBlockRepository,
    ILoginAttemptRepository,
)
from authsentry.domain.security.audit_log import AuditLog
from authsentry.domain.value_objects.identifier import BlockReason, IdentifierKind
from authsentry.domain.value_objects.rate_limit import RateLimitDecision, RateLimiterStats
from authsentry.domain.value_objects.security_events import SecurityEventType

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Sliding-window login rate limiter with automatic and manual blocks.

    Responsibilities:
    - Deciding whether a login attempt may proceed (`check`)
    - Counting failed attempts and auto-blocking at the hard thresholds
      (`record_failure`)
    - Clearing counters after a successful login (`reset`)
    - Administrative blocks and unblocks
    - Sweeping expired counters and blocks (`cleanup_expired`)

    Security Note:
        A successful login clears counters but never blocks. An identifier
        that was brute-forced into a block stays blocked until the block
        expires or an administrator removes it, even if the attacker then
        guesses the password.
    """

    def __init__(
        self,
        attempts: ILoginAttemptRepository,
        blocks: IActiveBlockRepository,
        audit_log: AuditLog,
        *,
        app_settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        """Initialize with required dependencies.

        Args:
            attempts: Storage for failed-login counters
            blocks: Storage for block records
            audit_log: Audit log receiving ``login_failed`` events
            app_settings: Thresholds and durations
            clock: Source of naive UTC timestamps
        """
        self._attempts = attempts
        self._blocks = blocks
        self._audit_log = audit_log
        self._settings = app_settings or default_settings
        self._clock = clock

    @property
    def _window(self) -> timedelta:
        return timedelta(minutes=self._settings.RATE_LIMIT_WINDOW_MINUTES)

    @property
    def _lockout(self) -> timedelta:
        return timedelta(minutes=self._settings.RATE_LIMIT_LOCKOUT_MINUTES)

    async def check(self, identifier: str, ip: str) -> RateLimitDecision:
        """Decide whether a login for ``identifier`` from ``ip`` may proceed.

        Active blocks are checked first, IP address before username; a block
        yields ``RATE_LIMITED`` with the seconds remaining until it expires.
        Otherwise the live counter values decide: a hard threshold yields
        ``RATE_LIMITED`` for the lockout duration, a captcha threshold yields
        ``CAPTCHA_REQUIRED``.

        Args:
            identifier: Username submitted with the attempt
            ip: Client IP address

        Returns:
            RateLimitDecision: Allowed, captcha required, or rate limited
        """
        self._require(identifier, "identifier")
        self._require(ip, "ip")
        now = self._clock()

        for value, kind in ((ip, IdentifierKind.IP), (identifier, IdentifierKind.USERNAME)):
            block = await self._blocks.find_active(value, kind.value, now)
            if block is not None:
                retry_after = max(1, math.ceil((block.expires_at - now).total_seconds()))
                logger.info(
                    "Login attempt denied by active block",
                    identifier_type=kind.value,
                    reason=block.reason,
                    retry_after=retry_after,
                )
                return RateLimitDecision.rate_limited(retry_after)

        ip_count = await self._live_count(ip, IdentifierKind.IP, now)
        user_count = await self._live_count(identifier, IdentifierKind.USERNAME, now)

        if (
            ip_count >= self._settings.RATE_LIMIT_MAX_ATTEMPTS_PER_IP
            or user_count >= self._settings.RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME
        ):
            logger.info(
                "Login attempt denied by attempt threshold",
                ip_attempts=ip_count,
                user_attempts=user_count,
            )
            return RateLimitDecision.rate_limited(int(self._lockout.total_seconds()))

        if (
            ip_count >= self._settings.RATE_LIMIT_CAPTCHA_IP_THRESHOLD
            or user_count >= self._settings.RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD
        ):
            return RateLimitDecision.captcha_required()

        return RateLimitDecision.allowed()

    async def record_failure(
        self,
        identifier: str,
        ip: str,
        *,
        user_agent: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Tuple[int, int]:
        """Count a failed login for both the IP address and the username.

        A counter that is missing or stale restarts at 1; otherwise it is
        incremented. A counter reaching its hard threshold creates an
        automatic block unless one is already active. Exactly one
        ``login_failed`` audit event is written, carrying both counts.

        Args:
            identifier: Username submitted with the attempt
            ip: Client IP address
            user_agent: Client user agent, for the audit event
            reason: Failure reason for the audit event
                (default: ``invalid_credentials``)

        Returns:
            Tuple[int, int]: ``(ip_count, username_count)`` after the update
        """
        self._require(identifier, "identifier")
        self._require(ip, "ip")
        now = self._clock()
        stale_before = now - self._window
        expires_at = now + self._window

        ip_attempt = await self._attempts.record_attempt(
            ip, IdentifierKind.IP.value, now=now, stale_before=stale_before, expires_at=expires_at
        )
        user_attempt = await self._attempts.record_attempt(
            identifier,
            IdentifierKind.USERNAME.value,
            now=now,
            stale_before=stale_before,
            expires_at=expires_at,
        )
        ip_count = ip_attempt.attempt_count
        user_count = user_attempt.attempt_count

        await self._maybe_auto_block(
            ip, IdentifierKind.IP, ip_count, self._settings.RATE_LIMIT_MAX_ATTEMPTS_PER_IP, now
        )
        await self._maybe_auto_block(
            identifier,
            IdentifierKind.USERNAME,
            user_count,
            self._settings.RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME,
            now,
        )

        metadata = {
            "username": identifier,
            "ip_address": ip,
            "ip_attempts": ip_count,
            "user_attempts": user_count,
        }
        if user_agent:
            metadata["user_agent"] = user_agent
        if reason:
            metadata["reason"] = reason
        await self._audit_log.log(SecurityEventType.LOGIN_FAILED, None, metadata)

        return ip_count, user_count

    async def reset(self, identifier: str, ip: str) -> None:
        """Delete both counters after a successful login. Blocks are kept."""
        await self._attempts.delete_for(ip, IdentifierKind.IP.value)
        await self._attempts.delete_for(identifier, IdentifierKind.USERNAME.value)
        logger.info("Reset auth attempts", username=identifier, ip_address=ip)

    async def manual_block(
        self,
        identifier: str,
        kind: IdentifierKind | str,
        reason: BlockReason | str,
        duration_minutes: Optional[int] = None,
    ) -> ActiveBlock:
        """Block an identifier on an administrator's request.

        Args:
            identifier: IP address or username to block
            kind: ``"ip"`` or ``"username"``
            reason: One of the `BlockReason` values
            duration_minutes: Block length (default: the lockout duration)

        Returns:
            ActiveBlock: The stored block

        Raises:
            ValidationError: If the kind, reason or duration is invalid
        """
        self._require(identifier, "identifier")
        try:
            kind = IdentifierKind.parse(kind)
            reason = BlockReason.parse(reason)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if duration_minutes is None:
            duration_minutes = self._settings.RATE_LIMIT_LOCKOUT_MINUTES
        if duration_minutes < 1:
            raise ValidationError("Block duration must be at least one minute")

        now = self._clock()
        block = await self._blocks.add(
            ActiveBlock(
                identifier=identifier,
                identifier_type=kind.value,
                reason=reason.value,
                blocked_at=now,
                expires_at=now + timedelta(minutes=duration_minutes),
                block_metadata={
                    "manual": True,
                    "auto_blocked": False,
                    "duration_minutes": duration_minutes,
                },
            )
        )
        logger.warning(
            "Manual block created",
            identifier=identifier,
            identifier_type=kind.value,
            reason=reason.value,
            duration_minutes=duration_minutes,
        )
        return block

    async def unblock(self, identifier: str, kind: IdentifierKind | str) -> int:
        """Remove every block row for an identifier.

        Returns:
            int: Number of block rows removed

        Raises:
            ValidationError: If the kind is invalid
        """
        try:
            kind = IdentifierKind.parse(kind)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        removed = await self._blocks.delete_for(identifier, kind.value)
        logger.info("Manual unblock", identifier=identifier, identifier_type=kind.value, removed=removed)
        return removed

    async def cleanup_expired(self) -> Tuple[int, int]:
        """Delete counters and blocks whose ``expires_at`` has passed.

        Returns:
            Tuple[int, int]: ``(deleted_counters, deleted_blocks)``
        """
        now = self._clock()
        deleted_attempts = await self._attempts.delete_expired(now)
        deleted_blocks = await self._blocks.delete_expired(now)

        if deleted_attempts or deleted_blocks:
            logger.info(
                "Cleaned up expired data",
                deleted_attempts=deleted_attempts,
                deleted_blocks=deleted_blocks,
            )
        return deleted_attempts, deleted_blocks

    async def get_stats(self) -> RateLimiterStats:
        now = self._clock()
        recent_since = now - timedelta(seconds=self._settings.RATE_LIMIT_RECENT_ACTIVITY_SECONDS)
        return RateLimiterStats(
            active_blocks=await self._blocks.count_active(now),
            total_login_attempts=await self._attempts.count_all(),
            recent_attempts=await self._attempts.count_recent(recent_since),
            blocked_ips=await self._blocks.count_active(now, IdentifierKind.IP.value),
            blocked_users=await self._blocks.count_active(now, IdentifierKind.USERNAME.value),
        )

    def cleanup_task(self) -> PeriodicTask:
        """Background sweep running `cleanup_expired` on the configured interval."""
        return PeriodicTask(
            "rate_limiter_cleanup",
            self._settings.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS,
            self.cleanup_expired,
        )

    async def _live_count(self, identifier: str, kind: IdentifierKind, now: datetime) -> int:
        attempt = await self._attempts.get(identifier, kind.value)
        if attempt is None or attempt.last_attempt_at <= now - self._window:
            return 0
        return attempt.attempt_count

    async def _maybe_auto_block(
        self,
        identifier: str,
        kind: IdentifierKind,
        count: int,
        threshold: int,
        now: datetime,
    ) -> None:
        if count < threshold:
            return
        if await self._blocks.find_active(identifier, kind.value, now) is not None:
            return

        expires_at = now + self._lockout
        await self._blocks.add(
            ActiveBlock(
                identifier=identifier,
                identifier_type=kind.value,
                reason=BlockReason.EXCESSIVE_LOGIN_ATTEMPTS.value,
                blocked_at=now,
                expires_at=expires_at,
                block_metadata={"auto_blocked": True, "attempt_count": count},
            )
        )
        logger.warning(
            "Auto-block created",
            identifier=identifier,
            identifier_type=kind.value,
            attempts=count,
            expires_at=expires_at.isoformat(),
        )

    @staticmethod
    def _require(value: Optional[str], name: str) -> None:
        if not value:
            raise ValidationError(f"{name} must not be empty")
        if len(value) > IDENTIFIER_MAX_LENGTH:
            raise ValidationError(f"{name} must be at most {IDENTIFIER_MAX_LENGTH} characters")
