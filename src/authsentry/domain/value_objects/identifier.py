"""Identifier kinds and block reasons used by the login rate limiter."""

from enum import Enum


class IdentifierKind(str, Enum):
    """What a rate-limit identifier denotes.

    Attributes:
        IP: A client IP address.
        USERNAME: The username submitted on a login form.
    """

    IP = "ip"
    USERNAME = "username"

    @classmethod
    def parse(cls, value: "IdentifierKind | str") -> "IdentifierKind":
        """Coerce a string such as ``"ip"`` into an `IdentifierKind`.

        Raises:
            ValueError: If the value is not a known kind.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown identifier kind: {value!r}") from None


class BlockReason(str, Enum):
    """Accepted reasons for an active block."""

    EXCESSIVE_LOGIN_ATTEMPTS = "excessive_login_attempts"
    BRUTE_FORCE_DETECTED = "brute_force_detected"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    MANUAL_BLOCK = "manual_block"
    SECURITY_POLICY_VIOLATION = "security_policy_violation"

    @classmethod
    def parse(cls, value: "BlockReason | str") -> "BlockReason":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise ValueError(f"Unknown block reason: {value!r}") from None
