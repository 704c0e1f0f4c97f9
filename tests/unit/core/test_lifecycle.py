"""Tests for assembling, starting and stopping the security core."""

import pytest

from authsentry.core.lifecycle import SecurityCore, build_security_core
from authsentry.domain.services.authentication.authentication_orchestrator import (
    AuthenticationOrchestrator,
)
from authsentry.domain.services.password_reset.password_reset_token_service import (
    PasswordResetTokenService,
)


@pytest.fixture
def core(engine, credential_verifier, token_service, user_repository, mailer, app_settings, clock):
    return build_security_core(
        credential_verifier=credential_verifier,
        token_service=token_service,
        users=user_repository,
        mailer=mailer,
        engine=engine,
        app_settings=app_settings,
        clock=clock,
    )


@pytest.mark.unit
class TestSecurityCore:
    def test_build_wires_services(self, core):
        assert isinstance(core, SecurityCore)
        assert isinstance(core.orchestrator, AuthenticationOrchestrator)
        assert isinstance(core.password_reset, PasswordResetTokenService)
        assert [task.name for task in core.tasks] == ["rate_limiter_cleanup", "password_reset_cleanup"]

    @pytest.mark.asyncio
    async def test_start_and_stop_background_sweeps(self, core):
        await core.start(create_tables=True)
        assert all(task.is_running for task in core.tasks)

        await core.stop()
        assert not any(task.is_running for task in core.tasks)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, core):
        async with core as running:
            assert running is core
            assert all(task.is_running for task in core.tasks)

        assert not any(task.is_running for task in core.tasks)

    @pytest.mark.asyncio
    async def test_start_fails_when_database_unavailable(self, core, mocker):
        mocker.patch(
            "authsentry.core.lifecycle.check_database_health",
            mocker.AsyncMock(return_value=False),
        )

        with pytest.raises(RuntimeError, match="Database unavailable"):
            await core.start()

        assert not any(task.is_running for task in core.tasks)

    @pytest.mark.asyncio
    async def test_wired_core_serves_a_login(self, core, credential_verifier, alice):
        credential_verifier.verify_credentials.return_value = alice

        async with core:
            result = await core.orchestrator.authenticate("alice", "correct horse", "10.0.0.1")

        assert result.user is alice
        assert result.access_token == "access-token-1"
