"""Tests for the settings aggregate."""

import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from authsentry.core.config.settings import Settings


@pytest.mark.unit
class TestSettings:
    def test_security_defaults(self):
        settings = Settings(DATABASE_URL="sqlite+aiosqlite://")

        assert settings.RATE_LIMIT_MAX_ATTEMPTS_PER_IP == 10
        assert settings.RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME == 5
        assert settings.RATE_LIMIT_CAPTCHA_IP_THRESHOLD == 7
        assert settings.RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD == 3
        assert settings.RATE_LIMIT_WINDOW_MINUTES == 60
        assert settings.RATE_LIMIT_LOCKOUT_MINUTES == 15
        assert settings.AUDIT_BRUTE_FORCE_THRESHOLD == 5
        assert settings.AUDIT_BRUTE_FORCE_WINDOW_SECONDS == 300
        assert settings.PASSWORD_RESET_TOKEN_TTL_HOURS == 2
        assert settings.PASSWORD_RESET_MAX_REQUESTS_PER_DAY == 3
        assert settings.PASSWORD_RESET_REVOKED_SET_LIMIT == 1000

    def test_database_url_is_assembled_from_parts(self):
        settings = Settings(
            DATABASE_URL="",
            POSTGRES_USER="sentry",
            POSTGRES_PASSWORD="s3cret",
            POSTGRES_HOST="db",
            POSTGRES_PORT=5433,
            POSTGRES_DB="audit",
        )

        assert settings.DATABASE_URL == "postgresql+asyncpg://sentry:s3cret@db:5433/audit"

    def test_url_assembly_without_password_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING):
            Settings(DATABASE_URL="", POSTGRES_PASSWORD="")

        assert not [r for r in caplog.records if r.name == "authsentry.core.config.database"]

    def test_explicit_database_url_wins(self):
        settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./sentry.db")

        assert settings.DATABASE_URL == "sqlite+aiosqlite:///./sentry.db"

    def test_captcha_threshold_cannot_exceed_hard_threshold(self):
        with pytest.raises(PydanticValidationError):
            Settings(
                DATABASE_URL="sqlite+aiosqlite://",
                RATE_LIMIT_MAX_ATTEMPTS_PER_USERNAME=3,
                RATE_LIMIT_CAPTCHA_USERNAME_THRESHOLD=4,
            )

    def test_production_requires_database_password(self):
        settings = Settings(APP_ENV="production", DATABASE_URL="", POSTGRES_PASSWORD="")

        with pytest.raises(ValueError, match="POSTGRES_PASSWORD"):
            settings.validate_required_fields()

    def test_development_skips_required_field_check(self):
        settings = Settings(APP_ENV="development", DATABASE_URL="", POSTGRES_PASSWORD="")

        settings.validate_required_fields()
