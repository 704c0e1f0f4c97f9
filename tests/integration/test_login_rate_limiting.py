"""End-to-end login scenarios through the orchestrator, rate limiter and
audit log, backed by the in-memory database.
"""

from datetime import timedelta

import pytest

from authsentry.core.exceptions import InvalidCredentialsError, RateLimitExceededError
from authsentry.domain.value_objects.security_events import SecurityEventFilter, SecurityEventType

pytestmark = pytest.mark.integration


@pytest.fixture
def verifier_accepting(credential_verifier, alice):
    """Credential verifier that accepts only alice's real password."""

    async def verify(username, password):
        if username == "alice" and password == "correct horse":
            return alice
        raise InvalidCredentialsError()

    credential_verifier.verify_credentials.side_effect = verify
    return credential_verifier


async def _failed_logins(orchestrator, username, ip, times):
    for _ in range(times):
        with pytest.raises((InvalidCredentialsError, RateLimitExceededError)):
            await orchestrator.authenticate(username, "wrong", ip)


class TestUsernameLockout:
    @pytest.mark.asyncio
    async def test_fifth_failure_locks_username(
        self, orchestrator, rate_limiter, block_repository, verifier_accepting, clock
    ):
        # Act
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 5)

        # Assert
        decision = await rate_limiter.check("alice", "10.2.2.2")
        assert decision.is_rate_limited
        assert decision.retry_after == 900
        block = await block_repository.find_active("alice", "username", clock.now)
        assert block.expires_at == clock.now + timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_locked_username_rejects_even_the_right_password(
        self, orchestrator, verifier_accepting
    ):
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 5)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await orchestrator.authenticate("alice", "correct horse", "10.3.3.3")

        assert exc_info.value.retry_after == 900
        verifier_accepting.verify_credentials.assert_awaited()
        assert verifier_accepting.verify_credentials.await_count == 5

    @pytest.mark.asyncio
    async def test_lockout_ends_after_block_and_window_expire(
        self, orchestrator, verifier_accepting, clock, alice
    ):
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 5)
        clock.advance(minutes=61)

        result = await orchestrator.authenticate("alice", "correct horse", "10.1.1.1")

        assert result.user is alice


class TestSuccessfulLoginResetsCounters:
    @pytest.mark.asyncio
    async def test_counters_restart_after_success(
        self, orchestrator, rate_limiter, attempt_repository, verifier_accepting
    ):
        # Arrange
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 2)

        # Act
        result = await orchestrator.authenticate("alice", "correct horse", "10.1.1.1")

        # Assert
        assert result.captcha_required is False
        assert await attempt_repository.get("alice", "username") is None
        assert await attempt_repository.get("10.1.1.1", "ip") is None
        assert await rate_limiter.record_failure("alice", "10.1.1.1") == (1, 1)

    @pytest.mark.asyncio
    async def test_captcha_signal_on_login_after_three_failures(self, orchestrator, verifier_accepting):
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 3)

        result = await orchestrator.authenticate("alice", "correct horse", "10.1.1.1")

        assert result.captcha_required is True


class TestManualBlocks:
    @pytest.mark.asyncio
    async def test_manual_block_denies_identifier_without_failures(
        self, orchestrator, rate_limiter, attempt_repository, verifier_accepting
    ):
        await rate_limiter.manual_block("alice", "username", "manual_block", duration_minutes=60)
        assert await attempt_repository.get("alice", "username") is None

        with pytest.raises(RateLimitExceededError) as exc_info:
            await orchestrator.authenticate("alice", "correct horse", "10.1.1.1")

        assert exc_info.value.retry_after == 3600
        verifier_accepting.verify_credentials.assert_not_awaited()


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired_rows(
        self, rate_limiter, attempt_repository, block_repository, clock
    ):
        # Arrange
        for _ in range(5):
            await rate_limiter.record_failure("alice", "10.1.1.1")
        await rate_limiter.manual_block("10.9.9.9", "ip", "manual_block", duration_minutes=120)
        clock.advance(minutes=61)
        await rate_limiter.record_failure("bob", "10.4.4.4")

        # Act
        deleted = await rate_limiter.cleanup_expired()

        # Assert
        assert deleted == (2, 1)
        assert await attempt_repository.get("bob", "username") is not None
        assert await attempt_repository.get("10.4.4.4", "ip") is not None
        assert await block_repository.find_active("10.9.9.9", "ip", clock.now) is not None
        assert await rate_limiter.cleanup_expired() == (0, 0)


class TestSharedIpScenario:
    @pytest.mark.asyncio
    async def test_ip_limit_applies_across_usernames(self, rate_limiter, clock):
        # seven failures for alice from one address within ten minutes
        for _ in range(7):
            await rate_limiter.record_failure("alice", "10.0.0.5")
            clock.advance(seconds=80)

        assert (await rate_limiter.check("alice", "10.0.0.5")).is_rate_limited
        # no failures are recorded for bob; the address is at its captcha threshold
        assert (await rate_limiter.check("bob", "10.0.0.5")).requires_captcha

        for _ in range(3):
            await rate_limiter.record_failure("carol", "10.0.0.5")

        decision = await rate_limiter.check("bob", "10.0.0.5")
        assert decision.is_rate_limited
        assert decision.retry_after == 900


class TestAuditTrail:
    @pytest.mark.asyncio
    async def test_each_login_outcome_is_audited_once(self, orchestrator, audit_log, verifier_accepting):
        await _failed_logins(orchestrator, "alice", "10.1.1.1", 1)
        await orchestrator.authenticate("alice", "correct horse", "10.1.1.1")

        failed = await audit_log.list(SecurityEventFilter(event_type=SecurityEventType.LOGIN_FAILED))
        succeeded = await audit_log.list(SecurityEventFilter(event_type=SecurityEventType.LOGIN_SUCCESS))
        assert len(failed) == 1
        assert len(succeeded) == 1
        assert succeeded[0].user_id == "1"
        for event in failed + succeeded:
            assert "wrong" not in str(event.event_metadata)
            assert "correct horse" not in str(event.event_metadata)
