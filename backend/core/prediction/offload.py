"""Offloading of heavy statistical calculations to a worker pool.

The event loop awaits the worker's reply for at most ``timeout`` seconds.
On timeout the call raises ``CalculationTimeout``; callers then fall back
to ``calculate_sync``, which runs the very same function in-line.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor

from core.errors import CalculationTimeout
from core.indicators.calculations import CALCULATIONS, calculate_sync

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class CalculationOffloader:
    """Run named calculations on an executor with a deadline.

    Parameters
    ----------
    executor : Executor | None
        Worker pool. ``None`` disables offloading; every call then runs
        synchronously on the caller.
    timeout : float
        Seconds to wait for a worker reply.
    """

    def __init__(self, executor: Executor | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.executor = executor
        self.timeout = timeout

    @classmethod
    def with_threads(cls, workers: int = 2, timeout: float = DEFAULT_TIMEOUT) -> "CalculationOffloader":
        return cls(
            ThreadPoolExecutor(max_workers=workers, thread_name_prefix="calc"),
            timeout=timeout,
        )

    @property
    def is_offloading(self) -> bool:
        return self.executor is not None

    async def calculate(self, kind: str, *args):
        """Run ``kind`` on the worker pool.

        Raises:
            CalculationTimeout: the worker did not reply within ``timeout``
            ValueError: unknown calculation type
        """
        if kind not in CALCULATIONS:
            raise ValueError(f"Unknown calculation type: {kind}")

        if self.executor is None:
            return calculate_sync(kind, *args)

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self.executor, CALCULATIONS[kind], *args)
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CalculationTimeout(
                f"{kind} calculation timed out after {self.timeout}s"
            ) from None

    async def calculate_or_fallback(self, kind: str, *args):
        """Run ``kind`` offloaded, falling back to in-line on any failure."""
        if kind not in CALCULATIONS:
            raise ValueError(f"Unknown calculation type: {kind}")

        try:
            return await self.calculate(kind, *args)
        except CalculationTimeout as e:
            logger.warning(f"{e}; using synchronous fallback")
        except Exception as e:
            logger.warning(f"Offloaded {kind} calculation failed: {e}; using synchronous fallback")
        return calculate_sync(kind, *args)

    def shutdown(self) -> None:
        """Stop the worker pool without waiting for pending calculations."""
        if self.executor is not None:
            self.executor.shutdown(wait=False, cancel_futures=True)
            self.executor = None
