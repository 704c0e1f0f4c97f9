"""Supervised periodic background tasks.

Sweeps such as expired rate-limit rows or stale reset tokens run on a fixed
interval, never from request paths. A failing tick is logged and the loop
keeps going; only `stop()` ends it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class PeriodicTask:
    """Runs an async callback every ``interval_seconds`` on the event loop.

    The first run happens one interval after `start()`, like a timer that is
    armed at startup and re-armed after each run.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            logger.warning("periodic_task_already_running", task=self.name)
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=f"periodic:{self.name}")
        logger.info("periodic_task_started", task=self.name, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the background loop and wait for it to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("periodic_task_stopped", task=self.name, runs=self.runs, failures=self.failures)

    async def run_once(self) -> bool:
        """Run the callback a single time.

        Returns:
            bool: True if the callback completed, False if it raised.
        """
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.error(
                "periodic_task_failed",
                task=self.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        finally:
            self.runs += 1
        return True

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            if not self._running:
                break
            await self.run_once()
