from datetime import datetime  # For timestamp fields
from typing import Optional  # For optional fields

from sqlalchemy import DateTime, UniqueConstraint  # For explicit DateTime type and pair uniqueness
from sqlmodel import Column, Field, SQLModel  # For ORM and table definition

from authsentry.core.clock import utcnow

IDENTIFIER_MAX_LENGTH = 255


class LoginAttempt(SQLModel, table=True):
    """Sliding-window counter of failed logins for one identifier.

    One row exists per ``(identifier, identifier_type)`` pair. A row whose
    ``last_attempt_at`` is older than the configured window is stale and is
    treated as a zero count by the rate limiter; stale rows are restarted in
    place on the next failure and swept once ``expires_at`` passes.

    Attributes:
        id: The unique identifier for the counter record.
        identifier: The IP address or username being counted.
        identifier_type: ``"ip"`` or ``"username"``.
        attempt_count: Failed attempts in the current window (at least 1).
        first_attempt_at: Start of the current window.
        last_attempt_at: Time of the most recent failed attempt.
        expires_at: ``last_attempt_at`` plus the window; swept afterwards.
        created_at: Row creation time.
    """

    __tablename__ = "login_attempts"  # Explicit table name for clarity

    id: Optional[int] = Field(
        default=None,  # Auto-incremented by database
        primary_key=True,
        description="The unique identifier for the counter record.",
    )
    identifier: str = Field(
        max_length=IDENTIFIER_MAX_LENGTH,
        nullable=False,
        description="IP address or username being counted.",
    )
    identifier_type: str = Field(
        max_length=16,
        nullable=False,
        description="Kind of identifier: 'ip' or 'username'.",
    )
    attempt_count: int = Field(
        default=1,
        ge=1,
        nullable=False,
        description="Failed attempts in the current window.",
    )
    first_attempt_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),  # Explicit DateTime type for Alembic
        description="Start of the current window.",
    )
    last_attempt_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),
        description="Time of the most recent failed attempt.",
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False, index=True),  # Index for sweeps
        description="Time after which the counter is swept.",
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False),
        description="Row creation time.",
    )

    __table_args__ = (
        UniqueConstraint(
            "identifier", "identifier_type", name="uq_login_attempts_identifier_type"
        ),  # At most one live counter per pair
        {"extend_existing": True},
    )
