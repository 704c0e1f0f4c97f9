"""Security event vocabulary for the audit log.

Event types, their severity and success classification, default failure
reasons, filters for querying the audit trail, and the shape of the
periodic security report.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


class SecurityEventType(str, Enum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    LOGOUT_FAILED = "logout_failed"
    TOKEN_REFRESH = "token_refresh"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_CHANGE_FAILED = "password_change_failed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"
    PASSWORD_RESET_FAILED = "password_reset_failed"
    PASSWORD_RESET_REVOKED = "password_reset_revoked"
    ACCOUNT_LOCKED = "account_locked"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    BRUTE_FORCE_DETECTED = "brute_force_detected"


class SecurityEventSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_SEVERITIES: Mapping[SecurityEventType, SecurityEventSeverity] = {
    SecurityEventType.BRUTE_FORCE_DETECTED: SecurityEventSeverity.CRITICAL,
    SecurityEventType.SUSPICIOUS_ACTIVITY: SecurityEventSeverity.ERROR,
    SecurityEventType.ACCOUNT_LOCKED: SecurityEventSeverity.WARNING,
    SecurityEventType.LOGIN_FAILED: SecurityEventSeverity.WARNING,
    SecurityEventType.TOKEN_REFRESH_FAILED: SecurityEventSeverity.WARNING,
    SecurityEventType.PASSWORD_CHANGE_FAILED: SecurityEventSeverity.WARNING,
    SecurityEventType.PASSWORD_RESET_FAILED: SecurityEventSeverity.WARNING,
}

SUCCESS_EVENT_TYPES: FrozenSet[SecurityEventType] = frozenset(
    {
        SecurityEventType.LOGIN_SUCCESS,
        SecurityEventType.LOGOUT,
        SecurityEventType.TOKEN_REFRESH,
        SecurityEventType.PASSWORD_CHANGED,
        SecurityEventType.PASSWORD_RESET_REQUESTED,
        SecurityEventType.PASSWORD_RESET_COMPLETED,
        SecurityEventType.PASSWORD_RESET_REVOKED,
    }
)

_DEFAULT_FAILURE_REASONS: Mapping[SecurityEventType, str] = {
    SecurityEventType.LOGIN_FAILED: "invalid_credentials",
    SecurityEventType.LOGOUT_FAILED: "invalid_token",
    SecurityEventType.TOKEN_REFRESH_FAILED: "invalid_token",
    SecurityEventType.PASSWORD_CHANGE_FAILED: "validation_failed",
    SecurityEventType.PASSWORD_RESET_FAILED: "reset_failed",
    SecurityEventType.ACCOUNT_LOCKED: "excessive_attempts",
}

# Only these types run pattern detection; detector output types must never be added.
PATTERN_TRIGGERS: FrozenSet[SecurityEventType] = frozenset(
    {SecurityEventType.LOGIN_FAILED, SecurityEventType.LOGIN_SUCCESS}
)

SENSITIVE_METADATA_KEYS: FrozenSet[str] = frozenset(
    {"password", "token", "refresh_token", "new_password", "current_password"}
)


def severity_for(event_type: SecurityEventType) -> SecurityEventSeverity:
    return _SEVERITIES.get(event_type, SecurityEventSeverity.INFO)


def is_success(event_type: SecurityEventType) -> bool:
    return event_type in SUCCESS_EVENT_TYPES


def failure_reason_for(event_type: SecurityEventType, metadata: Mapping[str, Any]) -> Optional[str]:
    """Failure reason for failure event types, taken from ``metadata["reason"]``
    when present. Success and informational events have no failure reason.
    """
    default = _DEFAULT_FAILURE_REASONS.get(event_type)
    if default is None:
        return None
    reason = metadata.get("reason")
    return str(reason) if reason else default


@dataclass(frozen=True)
class SecurityEventFilter:
    """Filters for `AuditLog.list`; unset fields do not constrain the query."""

    event_type: Optional[SecurityEventType] = None
    user_id: Optional[Any] = None
    ip_address: Optional[str] = None
    severity: Optional[SecurityEventSeverity] = None
    success: Optional[bool] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


@dataclass(frozen=True)
class SecurityReportSummary:
    total_events: int = 0
    login_attempts: int = 0
    failed_logins: int = 0
    successful_logins: int = 0
    locked_accounts: int = 0
    suspicious_activities: int = 0
    brute_force_alerts: int = 0


@dataclass(frozen=True)
class SecurityReport:
    """Aggregated audit activity for a reporting period.

    Attributes:
        period_from: Start of the period (inclusive).
        period_to: End of the period (inclusive).
        summary: Event totals for the period.
        top_events: ``(event_type, count)`` pairs, most frequent first.
        top_ip_addresses: ``(ip_address, failed_logins)`` pairs, most
            failed logins first.
        alerts: Latest critical and error events in the period.
    """

    period_from: datetime
    period_to: datetime
    summary: SecurityReportSummary
    top_events: List[Tuple[str, int]] = field(default_factory=list)
    top_ip_addresses: List[Tuple[str, int]] = field(default_factory=list)
    alerts: List[Dict[str, Any]] = field(default_factory=list)
