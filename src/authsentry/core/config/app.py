"""
Application-specific settings.
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Defines application-wide settings like project name, environment and logging.

    Security Note:
        - APP_BASE_URL is embedded in password reset links sent by email; it must
          point at a trusted HTTPS origin in production so reset tokens are never
          delivered to an attacker-controlled host
          (OWASP A05:2021 - Security Misconfiguration).
    """
    PROJECT_NAME: str = "authsentry"
    VERSION: str = "0.1.0"
    APP_ENV: str = "development"
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    APP_BASE_URL: str = Field(default="http://localhost:8000")
