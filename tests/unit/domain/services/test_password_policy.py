import pytest

from authsentry.core.config.settings import Settings
from authsentry.core.exceptions import PasswordPolicyError
from authsentry.domain.services.authentication.password_policy import PasswordPolicyValidator


@pytest.mark.unit
class TestPasswordPolicyValidator:
    def test_accepts_strong_password(self, password_policy, strong_password, other_strong_password):
        password_policy.validate(strong_password)
        password_policy.validate(other_strong_password)

        assert password_policy.errors(strong_password) == []

    @pytest.mark.parametrize(
        "password, expected",
        [
            ("Zb#7", "at least 8 characters"),
            ("zebra#moon7", "uppercase"),
            ("ZEBRA#MOON7", "lowercase"),
            ("Zebra#Moonx", "digit"),
            ("ZebraXMoon7", "special character"),
            ("Zebra#Mooo7", "weak patterns"),
            ("Zebra#Moon123", "weak patterns"),
            ("Qwerty#Moon7", "weak patterns"),
            ("Password#7x", "weak patterns"),
        ],
    )
    def test_rejects_weak_passwords(self, password_policy, password, expected):
        with pytest.raises(PasswordPolicyError, match=expected):
            password_policy.validate(password)

    def test_rejects_empty_password(self, password_policy):
        assert password_policy.errors("") == ["Password cannot be empty"]
        with pytest.raises(PasswordPolicyError):
            password_policy.validate(None)

    def test_rejects_overlong_password(self, password_policy):
        password = "Zb#7" + "xq" * 70

        assert "Password must not exceed 128 characters" in password_policy.errors(password)

    def test_reports_every_broken_rule(self, password_policy):
        errors = password_policy.errors("zebra")

        assert len(errors) >= 3

    def test_rules_are_configurable(self):
        relaxed = PasswordPolicyValidator(
            Settings(
                DATABASE_URL="sqlite+aiosqlite://",
                PASSWORD_MIN_LENGTH=4,
                PASSWORD_REQUIRE_SPECIAL_CHAR=False,
                PASSWORD_REQUIRE_UPPERCASE=False,
            )
        )

        relaxed.validate("zebra7")
