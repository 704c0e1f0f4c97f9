"""Tests for the SQL repositories against the in-memory database."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from authsentry.core.exceptions import DatabaseError
from authsentry.domain.entities import ActiveBlock, SecurityEvent
from authsentry.infrastructure.repositories import LoginAttemptRepository

NOW = datetime(2026, 3, 10, 12, 0, 0)
WINDOW = timedelta(hours=1)


async def _record(repository, identifier="alice", identifier_type="username", now=NOW):
    return await repository.record_attempt(
        identifier,
        identifier_type,
        now=now,
        stale_before=now - WINDOW,
        expires_at=now + WINDOW,
    )


def _block(identifier="10.0.0.1", identifier_type="ip", expires_at=NOW + timedelta(minutes=15)):
    return ActiveBlock(
        identifier=identifier,
        identifier_type=identifier_type,
        reason="manual_block",
        blocked_at=NOW,
        expires_at=expires_at,
        block_metadata={"manual": True},
    )


class TestLoginAttemptRepository:
    @pytest.mark.asyncio
    async def test_first_attempt_creates_counter(self, attempt_repository):
        attempt = await _record(attempt_repository)

        assert attempt.id is not None
        assert attempt.attempt_count == 1
        assert attempt.first_attempt_at == NOW
        assert attempt.expires_at == NOW + WINDOW

    @pytest.mark.asyncio
    async def test_live_counter_is_incremented(self, attempt_repository):
        await _record(attempt_repository)
        attempt = await _record(attempt_repository, now=NOW + timedelta(minutes=5))

        assert attempt.attempt_count == 2
        assert attempt.first_attempt_at == NOW
        assert attempt.last_attempt_at == NOW + timedelta(minutes=5)
        assert attempt.expires_at == NOW + timedelta(minutes=5) + WINDOW

    @pytest.mark.asyncio
    async def test_stale_counter_restarts_in_place(self, attempt_repository):
        first = await _record(attempt_repository)
        await _record(attempt_repository)
        later = NOW + timedelta(hours=3)

        attempt = await _record(attempt_repository, now=later)

        assert attempt.id == first.id
        assert attempt.attempt_count == 1
        assert attempt.first_attempt_at == later

    @pytest.mark.asyncio
    async def test_counters_are_keyed_by_kind(self, attempt_repository):
        await _record(attempt_repository, identifier="shared", identifier_type="ip")
        attempt = await _record(attempt_repository, identifier="shared", identifier_type="username")

        assert attempt.attempt_count == 1
        assert await attempt_repository.count_all() == 2

    @pytest.mark.asyncio
    async def test_delete_and_sweep(self, attempt_repository):
        await _record(attempt_repository, identifier="alice")
        await _record(attempt_repository, identifier="bob", now=NOW + timedelta(minutes=30))

        assert await attempt_repository.delete_for("alice", "username") == 1
        assert await attempt_repository.get("alice", "username") is None
        assert await attempt_repository.delete_expired(NOW + WINDOW) == 0
        assert await attempt_repository.delete_expired(NOW + timedelta(minutes=90)) == 1
        assert await attempt_repository.count_all() == 0

    @pytest.mark.asyncio
    async def test_count_recent(self, attempt_repository):
        await _record(attempt_repository, identifier="alice")
        await _record(attempt_repository, identifier="bob", now=NOW + timedelta(minutes=10))

        assert await attempt_repository.count_recent(NOW + timedelta(minutes=5)) == 1

    @pytest.mark.asyncio
    async def test_driver_errors_become_database_errors(self, mocker):
        session = mocker.AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
        session_factory = mocker.MagicMock()
        session_factory.return_value.__aenter__.return_value = session
        repository = LoginAttemptRepository(session_factory)

        with pytest.raises(DatabaseError) as exc_info:
            await repository.get("alice", "username")

        assert exc_info.value.code == "database_error"
        session.rollback.assert_awaited_once()


class TestActiveBlockRepository:
    @pytest.mark.asyncio
    async def test_find_active_ignores_expired_blocks(self, block_repository):
        await block_repository.add(_block(expires_at=NOW - timedelta(minutes=1)))

        assert await block_repository.find_active("10.0.0.1", "ip", NOW) is None

    @pytest.mark.asyncio
    async def test_find_active_returns_latest_expiry(self, block_repository):
        await block_repository.add(_block(expires_at=NOW + timedelta(minutes=5)))
        await block_repository.add(_block(expires_at=NOW + timedelta(minutes=50)))

        block = await block_repository.find_active("10.0.0.1", "ip", NOW)

        assert block.expires_at == NOW + timedelta(minutes=50)
        assert block.block_metadata == {"manual": True}

    @pytest.mark.asyncio
    async def test_block_is_scoped_to_kind(self, block_repository):
        await block_repository.add(_block(identifier="alice", identifier_type="username"))

        assert await block_repository.find_active("alice", "ip", NOW) is None

    @pytest.mark.asyncio
    async def test_counts_and_sweep(self, block_repository):
        await block_repository.add(_block())
        await block_repository.add(_block(identifier="alice", identifier_type="username"))
        await block_repository.add(_block(identifier="bob", identifier_type="username", expires_at=NOW))

        assert await block_repository.count_active(NOW) == 2
        assert await block_repository.count_active(NOW, "username") == 1
        assert await block_repository.delete_expired(NOW) == 1
        assert await block_repository.delete_for("alice", "username") == 1
        assert await block_repository.count_active(NOW) == 1

    def test_block_activity(self):
        block = _block()

        assert block.is_active(NOW)
        assert not block.is_active(NOW + timedelta(minutes=15))


class TestSecurityEventRepository:
    @pytest.mark.asyncio
    async def test_count_since_and_login_history(self, event_repository):
        for minutes in (0, 2, 10):
            await event_repository.add(
                SecurityEvent(event_type="login_failed", ip_address="10.0.0.5", timestamp=NOW - timedelta(minutes=minutes))
            )
        success = await event_repository.add(
            SecurityEvent(event_type="login_success", user_id="1", ip_address="10.0.0.5", success=True, timestamp=NOW)
        )

        assert await event_repository.count_since("login_failed", "10.0.0.5", NOW - timedelta(minutes=5)) == 2
        assert await event_repository.has_login_success("1", "10.0.0.5") is True
        assert await event_repository.has_login_success(1, "10.0.0.5", exclude_id=success.id) is False

    @pytest.mark.asyncio
    async def test_grouped_counts(self, event_repository):
        for ip in ("10.0.0.1", "10.0.0.1", "10.0.0.2"):
            await event_repository.add(SecurityEvent(event_type="login_failed", ip_address=ip, timestamp=NOW))
        await event_repository.add(SecurityEvent(event_type="logout", timestamp=NOW, success=True))

        by_type = await event_repository.count_by_type(NOW, NOW)
        top_ips = await event_repository.top_ip_addresses("login_failed", NOW, NOW, 1)

        assert by_type == [("login_failed", 3), ("logout", 1)]
        assert top_ips == [("10.0.0.1", 2)]

    @pytest.mark.asyncio
    async def test_latest_with_severity(self, event_repository):
        await event_repository.add(SecurityEvent(event_type="logout", severity="info", timestamp=NOW))
        alert = await event_repository.add(
            SecurityEvent(event_type="brute_force_detected", severity="critical", timestamp=NOW)
        )

        alerts = await event_repository.latest_with_severity(["critical", "error"], NOW, NOW, 10)

        assert [event.id for event in alerts] == [alert.id]
