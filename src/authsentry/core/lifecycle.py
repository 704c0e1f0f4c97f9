"""Security core lifecycle management.

This module wires the audit log, rate limiter, password reset service and
authentication orchestrator together, and handles startup and shutdown:
database health checks, optional table creation, and the background sweeps.
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from authsentry.core.clock import Clock, utcnow
from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings
from authsentry.core.logging import logger
from authsentry.core.periodic import PeriodicTask
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
from authsentry.infrastructure.database import (
    check_database_health,
    create_db_and_tables,
    create_engine_from_settings,
    create_session_factory,
)
from authsentry.infrastructure.repositories import (
    ActiveBlockRepository,
    LoginAttemptRepository,
    SecurityEventRepository,
)


class SecurityCore:
    """The assembled security core and its background sweeps.

    Usable as an async context manager: entering starts the core, leaving
    stops it.

    Attributes:
        audit_log: The security audit log.
        rate_limiter: The login rate limiter.
        password_reset: The password reset token service.
        orchestrator: The authentication orchestrator.
    """

    def __init__(
        self,
        *,
        audit_log: AuditLog,
        rate_limiter: RateLimiter,
        password_reset: PasswordResetTokenService,
        orchestrator: AuthenticationOrchestrator,
        engine: Optional[AsyncEngine] = None,
        owns_engine: bool = False,
        app_settings: Optional[Settings] = None,
    ):
        self.audit_log = audit_log
        self.rate_limiter = rate_limiter
        self.password_reset = password_reset
        self.orchestrator = orchestrator
        self._engine = engine
        self._owns_engine = owns_engine
        self._settings = app_settings or default_settings
        self._tasks: List[PeriodicTask] = [
            rate_limiter.cleanup_task(),
            password_reset.cleanup_task(),
        ]

    @property
    def tasks(self) -> List[PeriodicTask]:
        return list(self._tasks)

    async def start(self, create_tables: bool = False) -> None:
        """Check the database and start the background sweeps.

        Args:
            create_tables: Create missing tables first (development and
                tests; production schemas are managed by Alembic).

        Raises:
            RuntimeError: If the database is unavailable.
        """
        if self._engine is not None:
            if not await check_database_health(self._engine):
                logger.error("database_unavailable_on_startup")
                raise RuntimeError("Database unavailable")
            if create_tables:
                await create_db_and_tables(self._engine)

        for task in self._tasks:
            await task.start()
        logger.info("security_core_startup", env=self._settings.APP_ENV, version=self._settings.VERSION)

    async def stop(self) -> None:
        """Stop the background sweeps and release the engine if owned."""
        for task in self._tasks:
            await task.stop()
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
        logger.info("security_core_shutdown", env=self._settings.APP_ENV)

    async def __aenter__(self) -> "SecurityCore":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


def build_security_core(
    *,
    credential_verifier: ICredentialVerifier,
    token_service: ITokenService,
    users: IUserRepository,
    mailer: IMailer,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    engine: Optional[AsyncEngine] = None,
    app_settings: Optional[Settings] = None,
    password_policy: Optional[PasswordPolicyValidator] = None,
    clock: Clock = utcnow,
) -> SecurityCore:
    """Assemble the security core from its external capabilities.

    When neither a session factory nor an engine is given, an engine is
    created from DATABASE_URL and disposed when the core stops.

    Args:
        credential_verifier: External username and password check
        token_service: External session token primitive
        users: External user store
        mailer: Outbound mail capability
        session_factory: Session factory for the SQL repositories
        engine: Engine to health-check at startup
        app_settings: Settings (default: the package settings)
        password_policy: Rules for new passwords
        clock: Source of naive UTC timestamps

    Returns:
        SecurityCore: The wired, not yet started, security core
    """
    app_settings = app_settings or default_settings
    owns_engine = False
    if session_factory is None:
        if engine is None:
            engine = create_engine_from_settings(app_settings)
            owns_engine = True
        session_factory = create_session_factory(engine)

    password_policy = password_policy or PasswordPolicyValidator(app_settings)
    audit_log = AuditLog(SecurityEventRepository(session_factory), app_settings=app_settings, clock=clock)
    rate_limiter = RateLimiter(
        LoginAttemptRepository(session_factory),
        ActiveBlockRepository(session_factory),
        audit_log,
        app_settings=app_settings,
        clock=clock,
    )
    password_reset = PasswordResetTokenService(
        users,
        rate_limiter,
        audit_log,
        mailer,
        password_policy=password_policy,
        app_settings=app_settings,
        clock=clock,
    )
    orchestrator = AuthenticationOrchestrator(
        credential_verifier,
        token_service,
        users,
        rate_limiter,
        audit_log,
        password_policy=password_policy,
    )
    logger.debug("security_core_built", owns_engine=owns_engine)
    return SecurityCore(
        audit_log=audit_log,
        rate_limiter=rate_limiter,
        password_reset=password_reset,
        orchestrator=orchestrator,
        engine=engine,
        owns_engine=owns_engine,
        app_settings=app_settings,
    )
