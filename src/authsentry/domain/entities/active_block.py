from datetime import datetime  # For timestamp fields
from typing import Any, Dict, Optional  # For optional and JSON fields

from sqlalchemy import JSON, DateTime  # For metadata column and explicit DateTime type
from sqlmodel import Column, Field, Index, SQLModel  # For ORM and table definition

from authsentry.core.clock import utcnow
from authsentry.domain.entities.login_attempt import IDENTIFIER_MAX_LENGTH


class ActiveBlock(SQLModel, table=True):
    """An explicit deny record for an IP address or username.

    Blocks are created automatically when a counter reaches its hard
    threshold, or by an administrator. Only rows whose ``expires_at`` lies in
    the future are active; an active block takes precedence over any
    counter-based decision. Several historic blocks may exist for the same
    pair, so there is no uniqueness constraint.

    Attributes:
        id: The unique identifier for the block record.
        identifier: The blocked IP address or username.
        identifier_type: ``"ip"`` or ``"username"``.
        reason: One of the `BlockReason` values.
        blocked_at: When the block was created.
        expires_at: When the block stops applying.
        block_metadata: Stored in the ``metadata`` column; records whether the
            block was automatic or manual, the attempt count or the duration.
    """

    __tablename__ = "active_blocks"  # Explicit table name for clarity

    id: Optional[int] = Field(
        default=None,  # Auto-incremented by database
        primary_key=True,
        description="The unique identifier for the block record.",
    )
    identifier: str = Field(
        max_length=IDENTIFIER_MAX_LENGTH,
        nullable=False,
        description="Blocked IP address or username.",
    )
    identifier_type: str = Field(
        max_length=16,
        nullable=False,
        description="Kind of identifier: 'ip' or 'username'.",
    )
    reason: str = Field(
        max_length=64,
        nullable=False,
        description="Why the identifier is blocked.",
    )
    blocked_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False),  # Explicit DateTime type for Alembic
        description="When the block was created.",
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),
        description="When the block stops applying.",
    )
    block_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),  # 'metadata' is reserved on SQLModel
        description="Automatic/manual flags and block details.",
    )

    __table_args__ = (
        Index(
            "ix_active_blocks_lookup", "identifier_type", "identifier", "expires_at"
        ),  # Index for active block checks
        Index("ix_active_blocks_expires_at", "expires_at"),  # Index for sweeps
        {"extend_existing": True},
    )

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now
