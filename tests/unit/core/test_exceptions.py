import pytest

from authsentry.core.exceptions import (
    AuthenticationError,
    AuthSentryError,
    DailyLimitExceededError,
    InvalidCredentialsError,
    InvalidTokenError,
    LogoutError,
    PasswordPolicyError,
    RateLimitError,
    RateLimitExceededError,
    TokenError,
    TokenRevokedError,
    UnexpectedSecurityError,
    UserUpdateError,
    ValidationError,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    def test_base_error_carries_message_and_code(self):
        error = AuthSentryError("Something broke", code="broken")

        assert error.message == "Something broke"
        assert error.code == "broken"
        assert str(error) == "Something broke"

    def test_invalid_credentials_is_generic(self):
        error = InvalidCredentialsError()

        assert isinstance(error, AuthenticationError)
        assert error.code == "invalid_credentials"
        assert "username or password" in error.message

    def test_token_errors_are_authentication_errors(self):
        for error in (InvalidTokenError(), TokenRevokedError(), LogoutError()):
            assert isinstance(error, TokenError)
            assert isinstance(error, AuthenticationError)

    def test_rate_limit_exceeded_carries_retry_after(self):
        error = RateLimitExceededError(retry_after=900)

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 900
        assert error.code == "rate_limited"
        assert error.message == "Too many attempts. Please try again later."

    def test_daily_limit_has_its_own_code(self):
        error = DailyLimitExceededError()

        assert isinstance(error, RateLimitError)
        assert error.code == "daily_limit_exceeded"

    def test_user_update_error_copies_field_errors(self):
        field_errors = {"password": "too short"}
        error = UserUpdateError(errors=field_errors)
        field_errors["password"] = "changed"

        assert isinstance(error, ValidationError)
        assert error.errors == {"password": "too short"}

    def test_password_policy_error_is_validation_error(self):
        assert isinstance(PasswordPolicyError("weak"), ValidationError)

    def test_unexpected_error_message_is_safe(self):
        error = UnexpectedSecurityError()

        assert error.code == "unexpected_error"
        assert error.message == "An unexpected error occurred"
