from datetime import datetime  # For timestamp fields
from typing import Any, Dict, Optional  # For optional and JSON fields

from sqlalchemy import JSON, DateTime  # For metadata column and explicit DateTime type
from sqlmodel import Column, Field, Index, SQLModel  # For ORM and table definition

from authsentry.core.clock import utcnow

# Column widths; AuditLog clips incoming values to these before storing.
USER_ID_MAX_LENGTH = 64
USERNAME_MAX_LENGTH = 255
SESSION_ID_MAX_LENGTH = 255
IP_ADDRESS_MAX_LENGTH = 64
USER_AGENT_MAX_LENGTH = 512
FAILURE_REASON_MAX_LENGTH = 255


class SecurityEvent(SQLModel, table=True):
    """An immutable audit record of a security-relevant event.

    Events are append-only: nothing in the package updates or deletes them.
    The metadata is sanitized before it reaches this entity, so it never holds
    passwords or raw tokens.

    Attributes:
        id: The unique identifier for the event record.
        event_type: A `SecurityEventType` value, e.g. ``"login_failed"``.
        user_id: Identifier of the user involved, stored as text.
        username: Username of the user involved.
        session_id: Session the event belongs to, if known.
        ip_address: Client IP address, if known.
        user_agent: Client user agent, if known.
        success: Whether the event reports a successful operation.
        failure_reason: Machine-readable reason for failure events.
        severity: ``info``, ``warning``, ``error`` or ``critical``.
        event_metadata: Stored in the ``metadata`` column; sanitized context.
        timestamp: When the event happened.
    """

    __tablename__ = "security_events"  # Explicit table name for clarity

    id: Optional[int] = Field(
        default=None,  # Auto-incremented by database
        primary_key=True,
        description="The unique identifier for the event record.",
    )
    event_type: str = Field(max_length=64, nullable=False, description="Type of the event.")
    user_id: Optional[str] = Field(default=None, max_length=USER_ID_MAX_LENGTH, description="User identifier.")
    username: Optional[str] = Field(default=None, max_length=USERNAME_MAX_LENGTH, description="Username.")
    session_id: Optional[str] = Field(default=None, max_length=SESSION_ID_MAX_LENGTH, description="Session identifier.")
    ip_address: Optional[str] = Field(default=None, max_length=IP_ADDRESS_MAX_LENGTH, description="Client IP address.")
    user_agent: Optional[str] = Field(default=None, max_length=USER_AGENT_MAX_LENGTH, description="Client user agent.")
    success: bool = Field(default=False, nullable=False, description="Whether the operation succeeded.")
    failure_reason: Optional[str] = Field(default=None, max_length=FAILURE_REASON_MAX_LENGTH, description="Reason for failure.")
    severity: str = Field(default="info", max_length=16, nullable=False, description="Log severity.")
    event_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),  # 'metadata' is reserved on SQLModel
        description="Sanitized event context.",
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False),  # Explicit DateTime type for Alembic
        description="When the event happened.",
    )

    __table_args__ = (
        Index("ix_security_events_timestamp", "timestamp"),  # Index for ordered listing
        Index(
            "ix_security_events_type_ip_timestamp", "event_type", "ip_address", "timestamp"
        ),  # Index for brute-force detection
        Index(
            "ix_security_events_user_ip_type", "user_id", "ip_address", "event_type"
        ),  # Index for new-IP detection
        Index("ix_security_events_severity", "severity"),
        {"extend_existing": True},
    )
