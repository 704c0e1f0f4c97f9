"""Repository implementations for the infrastructure layer."""

from .active_block_repository import ActiveBlockRepository
from .login_attempt_repository import LoginAttemptRepository
from .security_event_repository import SecurityEventRepository

__all__ = ["ActiveBlockRepository", "LoginAttemptRepository", "SecurityEventRepository"]
