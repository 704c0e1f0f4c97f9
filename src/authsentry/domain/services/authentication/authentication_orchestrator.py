"""Authentication Orchestrator.

This domain service is the single entry point for login, session refresh,
logout, session validation and password change. It sequences input
validation, the rate limiter, the external credential and token
capabilities, and the audit log.

Each stage of a pipeline short-circuits on failure. Successful operations
return a value; failed operations raise a domain exception. Any exception the
service does not expect is logged, audited as a failure and replaced by
`UnexpectedSecurityError`, so callers never see internal errors.
"""

from typing import Any, Optional

import structlog

from authsentry.core.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    LogoutError,
    PasswordChangeError,
    PasswordPolicyError,
    RateLimitExceededError,
    TokenError,
    TokenGenerationError,
    UnexpectedSecurityError,
    UserUpdateError,
    ValidationError,
)
from authsentry.domain.entities.login_attempt import IDENTIFIER_MAX_LENGTH
from authsentry.domain.interfaces.services import (
    ICredentialVerifier,
    ITokenService,
    IUserRepository,
    TokenKind,
)
from authsentry.domain.security.audit_log import AuditLog
from authsentry.domain.services.authentication.password_policy import PasswordPolicyValidator
from authsentry.domain.services.rate_limiting.rate_limiter import RateLimiter
from authsentry.domain.value_objects.outcomes import (
    AuthenticationResult,
    AuthOutcome,
    SessionRefreshResult,
)
from authsentry.domain.value_objects.security_events import SecurityEventType

logger = structlog.get_logger(__name__)

_EXPECTED_ERRORS = (ValidationError, AuthenticationError, RateLimitExceededError)


class AuthenticationOrchestrator:
    """Coordinates the authentication security core for one login surface.

    Login pipeline:
    1. Reject empty usernames or passwords
    2. Ask the rate limiter; a captcha decision is carried forward
    3. Verify credentials; a failure is counted by the rate limiter
    4. Issue access and refresh tokens
    5. Clear the failure counters and audit the login

    Every terminal outcome writes exactly one audit event.

    Security Features:
        - Rate-limited attempts are rejected before credentials are checked
          and are not counted again
        - Invalid credentials produce one generic error whether the username
          or the password was wrong
        - Secrets are never logged or written to the audit trail
    """

    def __init__(
        self,
        credential_verifier: ICredentialVerifier,
        token_service: ITokenService,
        users: IUserRepository,
        rate_limiter: RateLimiter,
        audit_log: AuditLog,
        *,
        password_policy: Optional[PasswordPolicyValidator] = None,
    ):
        """Initialize with required dependencies.

        Args:
            credential_verifier: External username and password check
            token_service: External session token primitive
            users: External user store, used for password changes
            rate_limiter: Login rate limiter
            audit_log: Audit log for authentication events
            password_policy: Rules for new passwords
        """
        self._credential_verifier = credential_verifier
        self._token_service = token_service
        self._users = users
        self._rate_limiter = rate_limiter
        self._audit_log = audit_log
        self._password_policy = password_policy or PasswordPolicyValidator()

    async def authenticate(
        self,
        username: str,
        password: str,
        ip: str,
        *,
        user_agent: Optional[str] = None,
    ) -> AuthenticationResult:
        """Log a user in.

        Args:
            username: Username submitted on the login form
            password: Password submitted on the login form
            ip: Client IP address
            user_agent: Client user agent, for the audit trail

        Returns:
            AuthenticationResult: The user, both tokens, and whether the next
            attempt should present a captcha

        Raises:
            InvalidCredentialsError: If input is empty or credentials are wrong
            ValidationError: If the IP address is missing
            RateLimitExceededError: If the username or IP address is limited
            TokenGenerationError: If tokens could not be issued
            UnexpectedSecurityError: For any other failure
        """
        context = {"username": username, "ip_address": ip, "user_agent": user_agent}

        if not username or not password or len(username) > IDENTIFIER_MAX_LENGTH:
            await self._audit_log.log(SecurityEventType.LOGIN_FAILED, None, {**context, "reason": "invalid_input"})
            raise InvalidCredentialsError()
        if not ip or len(ip) > IDENTIFIER_MAX_LENGTH:
            await self._audit_log.log(SecurityEventType.LOGIN_FAILED, None, {**context, "reason": "invalid_input"})
            raise ValidationError("A valid IP address is required")

        try:
            decision = await self._rate_limiter.check(username, ip)
            if decision.is_rate_limited:
                logger.warning("Authentication rejected by rate limiter", retry_after=decision.retry_after)
                await self._audit_log.log(
                    SecurityEventType.LOGIN_FAILED,
                    None,
                    {**context, "reason": "rate_limited", "retry_after": decision.retry_after},
                )
                raise RateLimitExceededError(retry_after=decision.retry_after)

            try:
                user = await self._credential_verifier.verify_credentials(username, password)
            except AuthenticationError as e:
                await self._rate_limiter.record_failure(
                    username, ip, user_agent=user_agent, reason="invalid_credentials"
                )
                raise InvalidCredentialsError() from e

            try:
                access_token = await self._token_service.issue_token(user, TokenKind.ACCESS)
                refresh_token = await self._token_service.issue_token(user, TokenKind.REFRESH)
            except TokenError as e:
                logger.error("Token generation failed", user_id=user.id, error_type=type(e).__name__)
                await self._audit_log.log(
                    SecurityEventType.LOGIN_FAILED, user, {**context, "reason": "token_generation_failed"}
                )
                raise TokenGenerationError() from e

            await self._rate_limiter.reset(username, ip)
            await self._audit_log.log(
                SecurityEventType.LOGIN_SUCCESS,
                user,
                {"ip_address": ip, "user_agent": user_agent, "captcha_required": decision.requires_captcha},
            )
            return AuthenticationResult(
                user=user,
                access_token=access_token,
                refresh_token=refresh_token,
                captcha_required=decision.requires_captcha,
            )
        except _EXPECTED_ERRORS:
            raise
        except Exception as e:
            await self._record_unexpected("authenticate", e, SecurityEventType.LOGIN_FAILED, None, context)
            raise UnexpectedSecurityError() from e

    async def refresh_session(
        self, refresh_token: str, ip: str, *, user_agent: Optional[str] = None
    ) -> SessionRefreshResult:
        """Issue a new access token for a valid refresh token.

        The refresh token itself is returned unchanged.

        Raises:
            InvalidRefreshTokenError: If the token cannot be verified or
                resolved, or a new access token cannot be issued
            UnexpectedSecurityError: For any other failure
        """
        context = {"ip_address": ip, "user_agent": user_agent}
        try:
            if not refresh_token:
                raise InvalidTokenError("Refresh token is required", code="invalid_input")
            claims = await self._token_service.verify_token(refresh_token)
            user = await self._token_service.resource_from_claims(claims)
            access_token = await self._token_service.issue_token(user, TokenKind.ACCESS)
        except TokenError as e:
            logger.warning("Session refresh failed", reason=e.code)
            await self._audit_log.log(SecurityEventType.TOKEN_REFRESH_FAILED, None, {**context, "reason": e.code})
            raise InvalidRefreshTokenError() from e
        except Exception as e:
            await self._record_unexpected(
                "refresh_session", e, SecurityEventType.TOKEN_REFRESH_FAILED, None, context
            )
            raise UnexpectedSecurityError() from e

        await self._audit_log.log(SecurityEventType.TOKEN_REFRESH, user, context)
        return SessionRefreshResult(user=user, access_token=access_token, refresh_token=refresh_token)

    async def logout(self, token: str, ip: str, *, user_agent: Optional[str] = None) -> AuthOutcome:
        """Revoke a session token.

        Returns:
            AuthOutcome.LOGGED_OUT

        Raises:
            LogoutError: If the token cannot be verified, resolved or revoked
            UnexpectedSecurityError: For any other failure
        """
        context = {"ip_address": ip, "user_agent": user_agent}
        try:
            if not token:
                raise InvalidTokenError("Token is required", code="invalid_input")
            claims = await self._token_service.verify_token(token)
            user = await self._token_service.resource_from_claims(claims)
            await self._token_service.revoke_token(token)
        except TokenError as e:
            logger.warning("Logout failed", reason=e.code)
            await self._audit_log.log(SecurityEventType.LOGOUT_FAILED, None, {**context, "reason": e.code})
            raise LogoutError() from e
        except Exception as e:
            await self._record_unexpected("logout", e, SecurityEventType.LOGOUT_FAILED, None, context)
            raise UnexpectedSecurityError() from e

        await self._audit_log.log(SecurityEventType.LOGOUT, user, context)
        return AuthOutcome.LOGGED_OUT

    async def validate_session(self, token: str) -> Any:
        """Resolve the user behind a session token. Read-only, not audited.

        Raises:
            InvalidTokenError: With the verification failure as its code
            UnexpectedSecurityError: For any other failure
        """
        try:
            if not token:
                raise InvalidTokenError("Token is required", code="invalid_input")
            claims = await self._token_service.verify_token(token)
            return await self._token_service.resource_from_claims(claims)
        except InvalidTokenError:
            raise
        except TokenError as e:
            raise InvalidTokenError(e.message, code=e.code) from e
        except Exception as e:
            logger.exception("Unexpected error in validate_session", error_type=type(e).__name__)
            raise UnexpectedSecurityError() from e

    async def change_password(
        self,
        user: Any,
        current_password: str,
        new_password: str,
        ip: str,
        *,
        user_agent: Optional[str] = None,
    ) -> Any:
        """Change a logged-in user's password after re-verifying the current one.

        Args:
            user: The authenticated user
            current_password: The user's current password
            new_password: The new password in plain text
            ip: Client IP address
            user_agent: Client user agent, for the audit trail

        Returns:
            The updated user

        Raises:
            InvalidCurrentPasswordError: If the current password is wrong
            PasswordChangeError: If the new password breaks the policy or the
                user store rejects it
            UnexpectedSecurityError: For any other failure
        """
        context = {"ip_address": ip, "user_agent": user_agent}
        try:
            try:
                verified_user = await self._credential_verifier.verify_credentials(
                    user.username, current_password or ""
                )
            except AuthenticationError as e:
                await self._audit_log.log(
                    SecurityEventType.PASSWORD_CHANGE_FAILED,
                    user,
                    {**context, "reason": "invalid_current_password"},
                )
                raise InvalidCurrentPasswordError() from e

            try:
                self._password_policy.validate(new_password)
                updated_user = await self._users.update_user(verified_user, {"password": new_password})
            except (PasswordPolicyError, UserUpdateError) as e:
                metadata = {**context, "reason": e.code}
                if isinstance(e, UserUpdateError):
                    metadata["errors"] = e.errors
                await self._audit_log.log(SecurityEventType.PASSWORD_CHANGE_FAILED, user, metadata)
                raise PasswordChangeError(e.message) from e
        except _EXPECTED_ERRORS:
            raise
        except Exception as e:
            await self._record_unexpected(
                "change_password", e, SecurityEventType.PASSWORD_CHANGE_FAILED, user, context
            )
            raise UnexpectedSecurityError() from e

        await self._audit_log.log(SecurityEventType.PASSWORD_CHANGED, updated_user, context)
        return updated_user

    async def _record_unexpected(
        self,
        operation: str,
        error: Exception,
        event_type: SecurityEventType,
        user: Any,
        context: dict,
    ) -> None:
        logger.exception(
            "Unexpected error in authentication operation",
            operation=operation,
            error_type=type(error).__name__,
        )
        await self._audit_log.log(event_type, user, {**context, "reason": "unexpected_error"})
