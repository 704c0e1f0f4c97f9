"""
Database connection settings.
"""
import logging

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class DatabaseSettings(BaseSettings):
    """
    Defines settings for connecting to the relational store that holds login
    attempt counters, active blocks and security events.

    Security Note:
        - POSTGRES_PASSWORD must be securely stored and never logged or exposed
          in version control (OWASP A02:2021 - Cryptographic Failures).
    Performance Note:
        - Tune DATABASE_POOL_SIZE and DATABASE_MAX_OVERFLOW to the login traffic;
          every rate-limiter check issues several short queries.
    """
    POSTGRES_USER: str = "authsentry"
    POSTGRES_PASSWORD: SecretStr = SecretStr("")
    POSTGRES_DB: str = "authsentry"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = Field(ge=1, le=65535, default=5432)

    DATABASE_URL: str = Field(default="", validate_default=True)
    DATABASE_ECHO: bool = False
    DATABASE_POOL_PRE_PING: bool = True
    DATABASE_POOL_SIZE: int = Field(ge=1, default=10)
    DATABASE_MAX_OVERFLOW: int = Field(ge=0, default=20)
    DATABASE_HEALTH_RETRIES: int = Field(ge=1, default=3)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the async database connection URL if not provided explicitly.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided database URL.
        """
        if v:
            return v

        values = info.data
        password = values.get("POSTGRES_PASSWORD")
        secret = password.get_secret_value() if password else ""
        if not secret:
            # Production startup rejects this in validate_required_fields
            logger.debug("Assembling DATABASE_URL without POSTGRES_PASSWORD.")

        url = (
            f"postgresql+asyncpg://{values.get('POSTGRES_USER')}:"
            f"{secret}@{values.get('POSTGRES_HOST')}:"
            f"{values.get('POSTGRES_PORT')}/{values.get('POSTGRES_DB')}"
        )
        logger.debug("Assembled DATABASE_URL (password masked for security).")
        return url
