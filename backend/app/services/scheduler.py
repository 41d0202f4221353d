"""Periodic background tasks with an explicit start/stop lifecycle."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds until stopped.

    Errors raised by ``func`` are logged and the loop keeps running.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[Any]],
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self.runs = 0
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop (no-op if running)."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info(f"Periodic task {self.name} started (every {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Periodic task {self.name} stopped")

    async def _tick(self) -> None:
        try:
            await self.func()
        except Exception as e:
            logger.warning(f"Periodic task {self.name} error: {e}")
        finally:
            self.runs += 1

    async def _run(self) -> None:
        if self.run_immediately:
            await self._tick()
        while True:
            await asyncio.sleep(self.interval)
            await self._tick()
