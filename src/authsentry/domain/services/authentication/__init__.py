from .authentication_orchestrator import AuthenticationOrchestrator
from .password_policy import PasswordPolicyValidator

__all__ = ["AuthenticationOrchestrator", "PasswordPolicyValidator"]
