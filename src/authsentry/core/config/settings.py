"""Settings for the security core.

`Settings` merges the app, database and security groups into one
pydantic-settings model read from environment variables and dotenv files.

Dotenv file per ``APP_ENV``:
- development: ``.env``
- test / staging / production: ``.env.<APP_ENV>``, else ``.env``

Production refuses to start without a database password.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .database import DatabaseSettings
from .security import SecuritySettings

logger = logging.getLogger(__name__)


class Settings(AppSettings, DatabaseSettings, SecuritySettings):
    """All configuration groups in one model.

    Usage:
        - Import the shared instance `settings`.
        - Services accept an explicit `Settings` instance so tests can inject
          overrides, e.g. ``Settings(RATE_LIMIT_LOCKOUT_MINUTES=1)``.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    def validate_required_fields(self) -> None:
        """Reject a production configuration without a database password.

        Raises:
            ValueError: If the database password is missing in production.
        """
        if self.APP_ENV != "production":
            logger.info(f"Application running in {self.APP_ENV} environment")
            return

        database_url = urlparse(self.DATABASE_URL)
        if database_url.scheme.startswith("postgresql") and not database_url.password:
            error_msg = "POSTGRES_PASSWORD must be set in production"
            logger.error(error_msg)
            raise ValueError(error_msg)
        logger.info("Production configuration validated")


_ENV_FILES = {
    "test": ".env.test",
    "staging": ".env.staging",
    "production": ".env.production",
}


def _env_file_for(env: str) -> Optional[str]:
    """First existing dotenv file for ``env``, falling back to ``.env``."""
    for candidate in (_ENV_FILES.get(env), ".env"):
        if candidate and Path(candidate).exists():
            return candidate
    return None


def create_settings() -> Settings:
    """Build `Settings` for the environment named by ``APP_ENV``.

    Non-development environments prefer their own ``.env.<APP_ENV>`` file.
    Without any dotenv file only process environment variables are used.
    """
    env = os.getenv("APP_ENV", "development")
    env_file = _env_file_for(env)
    if env_file is None:
        logger.debug(f"No dotenv file for {env}, reading process environment only")
        return Settings()

    logger.info(f"Reading {env} configuration from {env_file}")
    return Settings(_env_file=env_file)


# Shared instance for callers that do not inject their own settings.
settings = create_settings()
settings.validate_required_fields()
