"""Unit tests for ResetToken and DailyAttemptCounter value objects.

These tests verify that reset tokens enforce their lifetime rules and never
expose more than a short prefix in logs.
"""

from dataclasses import FrozenInstanceError
from datetime import date, datetime, timedelta

import pytest

from authsentry.domain.value_objects.reset_token import DailyAttemptCounter, ResetToken

NOW = datetime(2026, 3, 10, 12, 0, 0)


class TestResetToken:
    """Test suite for ResetToken value object."""

    def test_generate_valid_token(self):
        """Test generating a token with the default lifetime."""
        # Act
        token = ResetToken.generate(user_id=1, email="alice@example.com", now=NOW)

        # Assert
        assert len(token.token) >= 43  # 32 bytes, URL-safe base64
        assert token.created_at == NOW
        assert token.expires_at == NOW + timedelta(hours=2)
        assert token.email == "alice@example.com"

    def test_generated_tokens_are_unique(self):
        tokens = {ResetToken.generate(user_id=1, email="a@example.com", now=NOW).token for _ in range(50)}

        assert len(tokens) == 50

    def test_generate_with_custom_ttl(self):
        token = ResetToken.generate(user_id=1, email="a@example.com", now=NOW, ttl_hours=5)

        assert token.expires_at == NOW + timedelta(hours=5)

    def test_token_immutability(self):
        """Test that token is immutable."""
        token = ResetToken.generate(user_id=1, email="a@example.com", now=NOW)

        with pytest.raises(FrozenInstanceError):
            token.token = "modified"

    def test_token_value_cannot_be_empty(self):
        with pytest.raises(ValueError, match="Token cannot be empty"):
            ResetToken(token="", user_id=1, email="a@example.com", created_at=NOW, expires_at=NOW + timedelta(hours=1))

    def test_token_must_expire_after_creation(self):
        with pytest.raises(ValueError, match="expire after"):
            ResetToken(token="abc", user_id=1, email="a@example.com", created_at=NOW, expires_at=NOW)

    def test_expiry_is_inclusive_of_the_deadline(self):
        token = ResetToken.generate(user_id=1, email="a@example.com", now=NOW)

        assert not token.is_expired(NOW + timedelta(hours=2) - timedelta(seconds=1))
        assert token.is_expired(NOW + timedelta(hours=2))

    def test_mask_for_logging(self):
        """Test that only an 8-character prefix is shown."""
        token = ResetToken(
            token="abcdefgh12345678",
            user_id=1,
            email="a@example.com",
            created_at=NOW,
            expires_at=NOW + timedelta(hours=2),
        )

        assert token.mask_for_logging() == "abcdefgh..."
        assert "12345678" not in token.mask_for_logging()


class TestDailyAttemptCounter:
    def test_counts_only_for_its_own_day(self):
        counter = DailyAttemptCounter(count=2, day=date(2026, 3, 10))

        assert counter.count_for(date(2026, 3, 10)) == 2
        assert counter.count_for(date(2026, 3, 11)) == 0

    def test_increment_same_day(self):
        counter = DailyAttemptCounter(count=2, day=date(2026, 3, 10)).increment(date(2026, 3, 10))

        assert counter == DailyAttemptCounter(count=3, day=date(2026, 3, 10))

    def test_increment_rolls_over_on_a_new_day(self):
        counter = DailyAttemptCounter(count=3, day=date(2026, 3, 10)).increment(date(2026, 3, 11))

        assert counter == DailyAttemptCounter(count=1, day=date(2026, 3, 11))
