"""Persisted domain entities.

Importing this package registers every table on ``SQLModel.metadata``.
"""

from .active_block import ActiveBlock
from .login_attempt import LoginAttempt
from .security_event import SecurityEvent

__all__ = ["ActiveBlock", "LoginAttempt", "SecurityEvent"]
