"""Password policy applied to new passwords.

Stateless strength rules checked before a password change or reset is handed
to the user store. Hashing and storage are the user store's concern.
"""

import re
from typing import ClassVar, List, Optional

from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings
from authsentry.core.exceptions import PasswordPolicyError


class PasswordPolicyValidator:
    """Validates new passwords against the configured strength rules.

    Security Requirements:
        - Minimum length (default 8), maximum 128 characters
        - Uppercase, lowercase, digit and special characters, each
          individually configurable
        - No common weak patterns (repeats, sequences, common words)
    """

    MAX_LENGTH: ClassVar[int] = 128
    SPECIAL_CHARS: ClassVar[str] = "!@#$%^&*()_+-=[]{}|;:,.<>?/'\"\\"
    WEAK_PATTERNS: ClassVar[List[str]] = [
        r"(.)\1{2,}",  # Three or more consecutive identical characters
        r"012|123|234|345|456|567|678|789|890",  # Sequential numbers
        r"abc|bcd|cde|def|efg|fgh|ghi|hij|ijk|jkl|klm|lmn|mno|nop|opq|pqr|qrs|rst|stu|tuv|uvw|vwx|wxy|xyz",
        r"qwe|wer|ert|rty|tyu|yui|uio|iop|asd|sdf|dfg|ghj|hjk|zxc|xcv|cvb|vbn|bnm",  # Keyboard rows
        r"password|admin|user|login|welcome|secret",  # Common words
    ]

    def __init__(self, app_settings: Optional[Settings] = None):
        self._settings = app_settings or default_settings

    def errors(self, password: Optional[str]) -> List[str]:
        """Return every rule the password breaks; empty if it is acceptable."""
        if not password:
            return ["Password cannot be empty"]

        errors = []
        min_length = self._settings.PASSWORD_MIN_LENGTH
        if len(password) < min_length:
            errors.append(f"Password must be at least {min_length} characters long")
        if len(password) > self.MAX_LENGTH:
            errors.append(f"Password must not exceed {self.MAX_LENGTH} characters")
        if self._settings.PASSWORD_REQUIRE_UPPERCASE and not re.search(r"[A-Z]", password):
            errors.append("Password must contain at least one uppercase letter")
        if self._settings.PASSWORD_REQUIRE_LOWERCASE and not re.search(r"[a-z]", password):
            errors.append("Password must contain at least one lowercase letter")
        if self._settings.PASSWORD_REQUIRE_DIGIT and not re.search(r"\d", password):
            errors.append("Password must contain at least one digit")
        if self._settings.PASSWORD_REQUIRE_SPECIAL_CHAR and not any(
            char in self.SPECIAL_CHARS for char in password
        ):
            errors.append("Password must contain at least one special character")
        if any(re.search(pattern, password.lower()) for pattern in self.WEAK_PATTERNS):
            errors.append("Password contains common weak patterns")
        return errors

    def validate(self, password: Optional[str]) -> None:
        """Validate a new password.

        Raises:
            PasswordPolicyError: If any rule is broken; the message lists
                every broken rule.
        """
        errors = self.errors(password)
        if errors:
            raise PasswordPolicyError("; ".join(errors))
