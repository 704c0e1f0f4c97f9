"""Domain interfaces (ports) implemented by infrastructure and host applications."""

from .repositories import (
    IActiveBlockRepository,
    ILoginAttemptRepository,
    ISecurityEventRepository,
)
from .services import (
    ICredentialVerifier,
    IMailer,
    ITokenService,
    IUserRepository,
    TokenKind,
)

__all__ = [
    "IActiveBlockRepository",
    "ICredentialVerifier",
    "ILoginAttemptRepository",
    "IMailer",
    "ISecurityEventRepository",
    "ITokenService",
    "IUserRepository",
    "TokenKind",
]
