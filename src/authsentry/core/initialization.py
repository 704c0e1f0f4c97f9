"""Process initialization.

This module handles the setup required before the security core is built:
environment variable loading and logging configuration.
"""

from dotenv import load_dotenv

from authsentry.core.config.settings import settings
from authsentry.core.logging import configure_logging


def initialize_application() -> None:
    """Initialize the process with all necessary setup tasks.

    This function performs the following initialization tasks:
    1. Load environment variables from a ``.env`` file
    2. Configure logging
    """
    load_dotenv(override=True)

    configure_logging(log_level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
