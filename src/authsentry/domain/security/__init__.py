from .audit_log import AuditLog, sanitize_metadata
from authsentry.domain.value_objects.security_events import (
    SecurityEventFilter,
    SecurityEventSeverity,
    SecurityEventType,
    SecurityReport,
    SecurityReportSummary,
)

__all__ = [
    "AuditLog",
    "SecurityEventFilter",
    "SecurityEventSeverity",
    "SecurityEventType",
    "SecurityReport",
    "SecurityReportSummary",
    "sanitize_metadata",
]
