"""Wall-clock helpers.

Timestamps are naive UTC so they compare identically in memory and in the
database columns that store them.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
