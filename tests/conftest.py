"""Shared fixtures for the authsentry test suite.

Repository and integration tests run against an in-memory SQLite database
through aiosqlite. External capabilities (credential verification, tokens,
the user store and mail) are AsyncMock fakes, and time is driven by a
controllable clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import authsentry.domain.entities  # noqa: F401  registers the tables
from authsentry.core.config.settings import Settings
from authsentry.domain.interfaces.services import (
    ICredentialVerifier,
    IMailer,
    ITokenService,
    IUserRepository,
)
from authsentry.domain.security.audit_log import AuditLog
from authsentry.domain.services.authentication.authentication_orchestrator import (
    AuthenticationOrchestrator,
)
from authsentry.domain.services.authentication.password_policy import PasswordPolicyValidator
from authsentry.domain.services.password_reset.password_reset_token_service import (
    PasswordResetTokenService,
)
from authsentry.domain.services.rate_limiting.rate_limiter import RateLimiter
from authsentry.infrastructure.database import create_session_factory
from authsentry.infrastructure.repositories import (
    ActiveBlockRepository,
    LoginAttemptRepository,
    SecurityEventRepository,
)

# Passwords that satisfy the default policy
STRONG_PASSWORD = "Zebra#Moon7"
OTHER_STRONG_PASSWORD = "Tiger$Lake9"


@dataclass
class FakeUser:
    id: int
    username: str
    email: Optional[str] = None


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 12, 0, 0))


@pytest.fixture
def app_settings():
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        APP_BASE_URL="https://auth.example.com/",
        LOG_JSON=False,
    )


@pytest.fixture
def alice():
    return FakeUser(id=1, username="alice", email="alice@example.com")


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def attempt_repository(session_factory):
    return LoginAttemptRepository(session_factory)


@pytest.fixture
def block_repository(session_factory):
    return ActiveBlockRepository(session_factory)


@pytest.fixture
def event_repository(session_factory):
    return SecurityEventRepository(session_factory)


@pytest.fixture
def audit_log(event_repository, app_settings, clock):
    return AuditLog(event_repository, app_settings=app_settings, clock=clock)


@pytest.fixture
def rate_limiter(attempt_repository, block_repository, audit_log, app_settings, clock):
    return RateLimiter(
        attempt_repository,
        block_repository,
        audit_log,
        app_settings=app_settings,
        clock=clock,
    )


@pytest.fixture
def credential_verifier(mocker):
    return mocker.AsyncMock(spec=ICredentialVerifier)


@pytest.fixture
def token_service(mocker):
    service = mocker.AsyncMock(spec=ITokenService)
    service.issue_token.side_effect = lambda user, kind: f"{kind.value}-token-{user.id}"
    return service


@pytest.fixture
def user_repository(mocker, alice):
    users = mocker.AsyncMock(spec=IUserRepository)
    users.get_by_id.return_value = alice
    users.get_by_email.return_value = alice
    users.get_by_username.return_value = alice
    users.update_user.side_effect = lambda user, changes: user
    return users


@pytest.fixture
def mailer(mocker):
    return mocker.AsyncMock(spec=IMailer)


@pytest.fixture
def password_policy(app_settings):
    return PasswordPolicyValidator(app_settings)


@pytest.fixture
def reset_service(user_repository, rate_limiter, audit_log, mailer, password_policy, app_settings, clock):
    return PasswordResetTokenService(
        user_repository,
        rate_limiter,
        audit_log,
        mailer,
        password_policy=password_policy,
        app_settings=app_settings,
        clock=clock,
    )


@pytest.fixture
def orchestrator(
    credential_verifier, token_service, user_repository, rate_limiter, audit_log, password_policy
):
    return AuthenticationOrchestrator(
        credential_verifier,
        token_service,
        user_repository,
        rate_limiter,
        audit_log,
        password_policy=password_policy,
    )


@pytest.fixture
def strong_password():
    return STRONG_PASSWORD


@pytest.fixture
def other_strong_password():
    return OTHER_STRONG_PASSWORD


@pytest.fixture
def make_user():
    return FakeUser
