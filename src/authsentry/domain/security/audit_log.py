"""Security audit log with inline suspicious-pattern detection.

Every call to `AuditLog.log` emits a leveled structlog line and appends a
sanitized `SecurityEvent` to the audit trail. The trail is fail-open: a
storage failure is logged and swallowed so that an audit-store outage never
blocks authentication.

After storing, login events are scanned synchronously for two patterns:

- brute force: too many ``login_failed`` events from one IP address within
  the lookback window raises ``brute_force_detected``;
- new IP: a ``login_success`` for a user from an IP address with no earlier
  successful login raises ``suspicious_activity``.

Detector events are logged through `log` again but are never scanned
themselves, which bounds the recursion to one level.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

import structlog

from authsentry.core.clock import Clock, utcnow
from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings
from authsentry.core.exceptions import ValidationError
from authsentry.domain.entities.security_event import (
    FAILURE_REASON_MAX_LENGTH,
    IP_ADDRESS_MAX_LENGTH,
    SESSION_ID_MAX_LENGTH,
    USER_AGENT_MAX_LENGTH,
    USER_ID_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    SecurityEvent,
)
from authsentry.domain.interfaces.repositories import ISecurityEventRepository
from authsentry.domain.value_objects.security_events import (
    PATTERN_TRIGGERS,
    SENSITIVE_METADATA_KEYS,
    SecurityEventFilter,
    SecurityEventSeverity,
    SecurityEventType,
    SecurityReport,
    SecurityReportSummary,
    failure_reason_for,
    is_success,
    severity_for,
)

logger = structlog.get_logger(__name__)

_MESSAGES: Mapping[SecurityEventType, str] = {
    SecurityEventType.LOGIN_SUCCESS: "User {username} logged in successfully from {ip}",
    SecurityEventType.LOGIN_FAILED: "Failed login attempt for user {username} from {ip}",
    SecurityEventType.LOGOUT: "User {username} logged out from {ip}",
    SecurityEventType.TOKEN_REFRESH: "Token refreshed for user {username} from {ip}",
    SecurityEventType.TOKEN_REFRESH_FAILED: "Token refresh failed from {ip}",
    SecurityEventType.PASSWORD_CHANGED: "Password changed for user {username} from {ip}",
    SecurityEventType.PASSWORD_CHANGE_FAILED: "Failed password change attempt for user {username} from {ip}",
    SecurityEventType.ACCOUNT_LOCKED: "Account locked for user {username} due to suspicious activity from {ip}",
}


def sanitize_metadata(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop secret keys at any depth and make values JSON-safe."""
    return {
        str(key): _json_safe(value)
        for key, value in metadata.items()
        if str(key).lower() not in SENSITIVE_METADATA_KEYS
    }


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)) and not isinstance(value, Enum):
        return value
    if isinstance(value, Enum):
        return _json_safe(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return sanitize_metadata(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if isinstance(value, UUID):
        return str(value)
    return str(value)


def _user_attr(user: Any, name: str) -> Any:
    if user is None:
        return None
    if isinstance(user, Mapping):
        return user.get(name)
    return getattr(user, name, None)


def _column(value: Any, max_length: int) -> Optional[str]:
    """Stringify a value and clip it to its column width."""
    return None if value is None else str(value)[:max_length]


class AuditLog:
    """Append-only security event log.

    Args:
        repository: Storage for the audit trail.
        app_settings: Detection thresholds and paging defaults.
        clock: Source of naive UTC timestamps.
    """

    def __init__(
        self,
        repository: ISecurityEventRepository,
        *,
        app_settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self._repository = repository
        self._settings = app_settings or default_settings
        self._clock = clock

    async def log(
        self,
        event_type: SecurityEventType | str,
        user: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[SecurityEvent]:
        """Record a security event.

        Args:
            event_type: The kind of event.
            user: The user involved, any object or mapping exposing ``id``
                and ``username``; `None` for anonymous events.
            metadata: Event context. ``ip_address``, ``user_agent`` and
                ``session_id`` are lifted into their own columns and
                ``reason`` becomes the failure reason. Secret keys are
                removed before logging or storage.

        Returns:
            The stored event, or `None` if storing it failed.
        """
        event_type = SecurityEventType(event_type)
        metadata = dict(metadata or {})
        now = self._clock()

        user_id = _column(_user_attr(user, "id"), USER_ID_MAX_LENGTH)
        username = _column(_user_attr(user, "username") or metadata.get("username"), USERNAME_MAX_LENGTH)
        ip_address = _column(metadata.get("ip_address"), IP_ADDRESS_MAX_LENGTH)
        severity = severity_for(event_type)
        clean_metadata = sanitize_metadata(metadata)

        template = _MESSAGES.get(event_type)
        if template is not None:
            message = template.format(username=username, ip=ip_address)
        elif username is not None or ip_address is not None:
            message = f"Security event {event_type.value} for user {username} from {ip_address}"
        else:
            message = f"Security event: {event_type.value}"

        log_method = getattr(logger, severity.value)
        log_method(
            message,
            security_event=event_type.value,
            user_id=user_id,
            username=username,
            ip_address=ip_address,
            metadata=clean_metadata,
        )

        event = SecurityEvent(
            event_type=event_type.value,
            user_id=user_id,
            username=username,
            session_id=_column(metadata.get("session_id"), SESSION_ID_MAX_LENGTH),
            ip_address=ip_address,
            user_agent=_column(metadata.get("user_agent"), USER_AGENT_MAX_LENGTH),
            success=is_success(event_type),
            failure_reason=_column(failure_reason_for(event_type, metadata), FAILURE_REASON_MAX_LENGTH),
            severity=severity.value,
            event_metadata=clean_metadata,
            timestamp=now,
        )
        stored = await self._store(event)

        if event_type in PATTERN_TRIGGERS:
            try:
                await self._check_patterns(event_type, stored, user_id, username, ip_address, now)
            except Exception as e:
                logger.error(
                    "Security pattern check failed",
                    security_event=event_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return stored

    async def list(
        self,
        filters: Optional[SecurityEventFilter] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[SecurityEvent]:
        """List events newest first.

        Args:
            filters: Optional constraints on type, user, IP address, severity,
                success and date range.
            limit: Page size (default: AUDIT_DEFAULT_PAGE_SIZE).
            offset: Events to skip.

        Raises:
            ValidationError: If ``limit`` or ``offset`` is negative.
        """
        if limit is None:
            limit = self._settings.AUDIT_DEFAULT_PAGE_SIZE
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must not be negative")
        return await self._repository.list(filters, limit=limit, offset=offset)

    async def user_activity(
        self,
        user_id: Any,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[SecurityEvent]:
        """All events for a user, newest first, optionally within a date range."""
        filters = SecurityEventFilter(user_id=user_id, from_date=from_date, to_date=to_date)
        return await self._repository.list(filters, limit=None)

    async def security_report(self, from_date: datetime, to_date: datetime) -> SecurityReport:
        """Summarize audit activity for a period.

        Args:
            from_date: Start of the period (inclusive).
            to_date: End of the period (inclusive).

        Returns:
            SecurityReport: Totals, most frequent event types, IP addresses
            with the most failed logins, and the latest critical and error
            events.

        Raises:
            ValidationError: If the period ends before it starts.
        """
        if to_date < from_date:
            raise ValidationError("Report period must end after it starts")

        top_n = self._settings.AUDIT_REPORT_TOP_N
        by_type = await self._repository.count_by_type(from_date, to_date)
        counts = dict(by_type)

        failed = counts.get(SecurityEventType.LOGIN_FAILED.value, 0)
        succeeded = counts.get(SecurityEventType.LOGIN_SUCCESS.value, 0)
        summary = SecurityReportSummary(
            total_events=sum(counts.values()),
            login_attempts=failed + succeeded,
            failed_logins=failed,
            successful_logins=succeeded,
            locked_accounts=counts.get(SecurityEventType.ACCOUNT_LOCKED.value, 0),
            suspicious_activities=counts.get(SecurityEventType.SUSPICIOUS_ACTIVITY.value, 0),
            brute_force_alerts=counts.get(SecurityEventType.BRUTE_FORCE_DETECTED.value, 0),
        )

        top_ip_addresses = await self._repository.top_ip_addresses(
            SecurityEventType.LOGIN_FAILED.value, from_date, to_date, top_n
        )
        alert_events = await self._repository.latest_with_severity(
            [SecurityEventSeverity.CRITICAL.value, SecurityEventSeverity.ERROR.value],
            from_date,
            to_date,
            top_n,
        )
        alerts = [
            {
                "id": event.id,
                "event_type": event.event_type,
                "severity": event.severity,
                "user_id": event.user_id,
                "ip_address": event.ip_address,
                "failure_reason": event.failure_reason,
                "timestamp": event.timestamp.isoformat(),
            }
            for event in alert_events
        ]

        logger.info(
            "Security report generated",
            period_from=from_date.isoformat(),
            period_to=to_date.isoformat(),
            total_events=summary.total_events,
            alerts=len(alerts),
        )
        return SecurityReport(
            period_from=from_date,
            period_to=to_date,
            summary=summary,
            top_events=by_type[:top_n],
            top_ip_addresses=top_ip_addresses,
            alerts=alerts,
        )

    async def _store(self, event: SecurityEvent) -> Optional[SecurityEvent]:
        try:
            return await self._repository.add(event)
        except Exception as e:
            logger.error(
                "Failed to store security event",
                security_event=event.event_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _check_patterns(
        self,
        event_type: SecurityEventType,
        stored: Optional[SecurityEvent],
        user_id: Optional[str],
        username: Optional[str],
        ip_address: Optional[str],
        now: datetime,
    ) -> None:
        if event_type is SecurityEventType.LOGIN_FAILED and ip_address is not None:
            await self._check_brute_force(ip_address, now)
        elif event_type is SecurityEventType.LOGIN_SUCCESS and user_id is not None and ip_address is not None:
            await self._check_new_ip(stored, user_id, username, ip_address, now)

    async def _check_brute_force(self, ip_address: str, now: datetime) -> None:
        since = now - timedelta(seconds=self._settings.AUDIT_BRUTE_FORCE_WINDOW_SECONDS)
        recent_failures = await self._repository.count_since(
            SecurityEventType.LOGIN_FAILED.value, ip_address, since
        )
        if recent_failures >= self._settings.AUDIT_BRUTE_FORCE_THRESHOLD:
            await self.log(
                SecurityEventType.BRUTE_FORCE_DETECTED,
                None,
                {"ip_address": ip_address, "attempts": recent_failures, "detection_time": now},
            )

    async def _check_new_ip(
        self,
        stored: Optional[SecurityEvent],
        user_id: str,
        username: Optional[str],
        ip_address: str,
        now: datetime,
    ) -> None:
        seen_before = await self._repository.has_login_success(
            user_id, ip_address, exclude_id=stored.id if stored is not None else None
        )
        if not seen_before:
            await self.log(
                SecurityEventType.SUSPICIOUS_ACTIVITY,
                {"id": user_id, "username": username},
                {"ip_address": ip_address, "reason": "login_from_new_ip", "detection_time": now},
            )
