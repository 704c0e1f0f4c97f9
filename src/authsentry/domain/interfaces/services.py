"""Service interfaces for the capabilities the security core consumes.

Credential verification, token issuance, user storage and mail delivery
live outside this package. These interfaces define the contracts the
orchestrator and the password reset service depend on, enabling dependency
inversion and better testability.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Mapping, Optional


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class ICredentialVerifier(ABC):
    """Interface for checking a username and password pair."""

    @abstractmethod
    async def verify_credentials(self, username: str, password: str) -> Any:
        """Verify credentials and return the matching user.

        Args:
            username: Username submitted on the login form.
            password: Plain password submitted on the login form.

        Returns:
            The authenticated user object. It must expose ``id`` and
            ``username`` attributes.

        Raises:
            InvalidCredentialsError: If the user is unknown or the password
                does not match.
        """
        raise NotImplementedError


class ITokenService(ABC):
    """Interface for the session token primitive (e.g. JWT)."""

    @abstractmethod
    async def issue_token(self, user: Any, kind: TokenKind) -> str:
        """Issue a token of the given kind for a user.

        Raises:
            TokenError: If the token could not be issued.
        """
        raise NotImplementedError

    @abstractmethod
    async def verify_token(self, token: str) -> Mapping[str, Any]:
        """Verify a token and return its claims.

        Raises:
            TokenError: If the token is malformed, expired or revoked.
        """
        raise NotImplementedError

    @abstractmethod
    async def resource_from_claims(self, claims: Mapping[str, Any]) -> Any:
        """Resolve the user a set of verified claims refers to.

        Raises:
            TokenError: If the claims do not refer to an existing user.
        """
        raise NotImplementedError

    @abstractmethod
    async def revoke_token(self, token: str) -> None:
        """Revoke a token so later verification fails.

        Raises:
            TokenError: If the token could not be revoked.
        """
        raise NotImplementedError


class IUserRepository(ABC):
    """Interface for the external user store."""

    @abstractmethod
    async def get_by_id(self, user_id: Any) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    async def update_user(self, user: Any, changes: Mapping[str, Any]) -> Any:
        """Apply changes to a user and return the updated user.

        Args:
            user: The user to update.
            changes: Field values to apply, e.g. ``{"password": "..."}``.
                Passwords are given in plain text; hashing is the store's job.

        Raises:
            UserUpdateError: If the store rejects the changes.
        """
        raise NotImplementedError


class IMailer(ABC):
    """Interface for outbound, fire-and-forget mail delivery."""

    @abstractmethod
    async def send_mail(self, template: str, recipient: str, payload: Mapping[str, Any]) -> None:
        """Hand a templated message off for delivery.

        Args:
            template: Template name, e.g. ``"password_reset"``.
            recipient: Destination email address.
            payload: Template variables.

        Raises:
            EmailServiceError: If the message could not be handed off.
        """
        raise NotImplementedError
