"""Create security core tables

Revision ID: 0001_create_security_core_tables
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_create_security_core_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create login_attempts, active_blocks and security_events tables."""
    op.create_table(
        'login_attempts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identifier', sa.String(length=255), nullable=False),
        sa.Column('identifier_type', sa.String(length=16), nullable=False),
        sa.Column('attempt_count', sa.Integer(), nullable=False),
        sa.Column('first_attempt_at', sa.DateTime(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        # At most one live counter per pair
        sa.UniqueConstraint('identifier', 'identifier_type', name='uq_login_attempts_identifier_type'),
    )
    op.create_index('ix_login_attempts_expires_at', 'login_attempts', ['expires_at'], unique=False)

    op.create_table(
        'active_blocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identifier', sa.String(length=255), nullable=False),
        sa.Column('identifier_type', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=64), nullable=False),
        sa.Column('blocked_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
    )
    # Index for active block checks
    op.create_index(
        'ix_active_blocks_lookup', 'active_blocks', ['identifier_type', 'identifier', 'expires_at'], unique=False
    )
    op.create_index('ix_active_blocks_expires_at', 'active_blocks', ['expires_at'], unique=False)

    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('failure_reason', sa.String(length=255), nullable=True),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_security_events_timestamp', 'security_events', ['timestamp'], unique=False)
    # Index for brute-force detection
    op.create_index(
        'ix_security_events_type_ip_timestamp', 'security_events', ['event_type', 'ip_address', 'timestamp'], unique=False
    )
    # Index for new-IP detection
    op.create_index(
        'ix_security_events_user_ip_type', 'security_events', ['user_id', 'ip_address', 'event_type'], unique=False
    )
    op.create_index('ix_security_events_severity', 'security_events', ['severity'], unique=False)


def downgrade() -> None:
    """Drop the security core tables."""
    op.drop_index('ix_security_events_severity', table_name='security_events')
    op.drop_index('ix_security_events_user_ip_type', table_name='security_events')
    op.drop_index('ix_security_events_type_ip_timestamp', table_name='security_events')
    op.drop_index('ix_security_events_timestamp', table_name='security_events')
    op.drop_table('security_events')

    op.drop_index('ix_active_blocks_expires_at', table_name='active_blocks')
    op.drop_index('ix_active_blocks_lookup', table_name='active_blocks')
    op.drop_table('active_blocks')

    op.drop_index('ix_login_attempts_expires_at', table_name='login_attempts')
    op.drop_table('login_attempts')
