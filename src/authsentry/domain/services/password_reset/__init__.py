from .password_reset_token_service import PasswordResetTokenService

__all__ = ["PasswordResetTokenService"]
