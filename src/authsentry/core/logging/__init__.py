"""structlog setup for the security core.

Every module logs through `structlog.get_logger(__name__)` with keyword
context. Production renders one JSON object per line, development a
colored console line.
"""

import logging
from typing import Optional

import structlog

from authsentry.core.config.settings import settings


def configure_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog on top of the standard library logger.

    Args:
        log_level: Minimum level name (default: ``LOG_LEVEL``)
        json_logs: Render JSON instead of console output (default: ``LOG_JSON``)
    """
    level_name = (log_level or settings.LOG_LEVEL).upper()
    use_json = settings.LOG_JSON if json_logs is None else json_logs

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Package-level logger for modules without a named one
logger = structlog.get_logger()
