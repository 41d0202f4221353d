"""Request layer: cached, deduplicated, time-bounded and retried fetches.

Flow for a single request:
1. Return a live cache entry when a cache key is given (no network I/O)
2. Wait for a rate limiter slot, then fetch through the market data
   client under a wall-clock deadline
3. Normalize the payload into an ``ApiResponse`` envelope
4. Cache the envelope (success only) and return it

Only ``NetworkError`` is retried, with delay ``base_delay * 2**attempt``.
Timeouts and parse errors propagate immediately.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Protocol, Sequence

import orjson

from app.clients.normalizers import Err, normalize_response
from app.models.market import ApiResponse
from app.storage.cache import CacheManager
from core.errors import NetworkError, RequestTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_TIMEOUT = 15.0  # seconds


class DataSource(Protocol):
    """Fetches raw payloads. May also provide ``acquire`` (rate limiting)
    and ``close``."""

    async def fetch(self, target: str) -> Any: ...


@dataclass(slots=True, frozen=True)
class RequestDescriptor:
    """One logical request; retried copies differ only in ``retries``."""

    target: str
    cache_key: str | None = None
    cache_ttl: float | None = None
    retries: int = 0

    def next_attempt(self) -> "RequestDescriptor":
        return replace(self, retries=self.retries + 1)


@dataclass(slots=True, frozen=True)
class BatchResult:
    """Per-request outcome of a batch."""

    target: str
    success: bool
    data: ApiResponse | None = None
    error: str | None = None


RequestLike = RequestDescriptor | str


def batch_key(requests: Sequence[RequestDescriptor]) -> str:
    """Identity of a batch: its sorted targets (cache policy is ignored)."""
    return orjson.dumps(sorted(r.target for r in requests)).decode()


class APIManager:
    """Fetch logical resources with caching, retry and batch coalescing."""

    def __init__(
        self,
        client: DataSource,
        cache: CacheManager,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.cache = cache
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep
        self._in_flight: dict[str, asyncio.Future] = {}

    @staticmethod
    def _descriptor(request: RequestLike) -> RequestDescriptor:
        if isinstance(request, RequestDescriptor):
            return request
        return RequestDescriptor(target=request)

    # =========================================================================
    # Single requests
    # =========================================================================

    async def make_request(
        self,
        request: RequestLike,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
    ) -> ApiResponse:
        """
        Fetch one logical resource.

        Args:
            request: Descriptor or bare target path
            cache_key: Cache key (overrides the descriptor's)
            cache_ttl: TTL in seconds for the cached response

        Returns:
            Normalized response envelope

        Raises:
            NetworkError: Still failing after ``max_retries`` retries
            RequestTimeoutError: Deadline elapsed (not retried)
            ParseError: Malformed payload (not retried)
        """
        descriptor = self._descriptor(request)
        if cache_key is not None or cache_ttl is not None:
            descriptor = replace(
                descriptor,
                cache_key=cache_key if cache_key is not None else descriptor.cache_key,
                cache_ttl=cache_ttl if cache_ttl is not None else descriptor.cache_ttl,
            )

        if descriptor.cache_key:
            cached = self.cache.get(descriptor.cache_key)
            if cached is not None:
                logger.debug(f"Cache hit: {descriptor.cache_key}")
                return cached

        while True:
            try:
                return await self._attempt(descriptor)
            except NetworkError as e:
                if descriptor.retries >= self.max_retries:
                    logger.error(
                        f"Request failed after {descriptor.retries} retries: "
                        f"{descriptor.target} ({e})"
                    )
                    raise
                delay = self.base_delay * 2 ** descriptor.retries
                logger.warning(
                    f"Request failed, retrying in {delay:.1f}s "
                    f"({descriptor.retries + 1}/{self.max_retries}): {descriptor.target} ({e})"
                )
                await self._sleep(delay)
                descriptor = descriptor.next_attempt()

    async def _attempt(self, descriptor: RequestDescriptor) -> ApiResponse:
        # Rate limiter queueing is outside the deadline
        acquire = getattr(self.client, "acquire", None)
        if acquire is not None:
            await acquire()

        try:
            payload = await asyncio.wait_for(
                self.client.fetch(descriptor.target), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request timed out after {self.timeout}s: {descriptor.target}"
            ) from e

        result = normalize_response(descriptor.target, payload)
        if isinstance(result, Err):
            raise result.error

        response = result.value
        if descriptor.cache_key:
            self.cache.set(descriptor.cache_key, response, descriptor.cache_ttl)
        return response

    # =========================================================================
    # Batches
    # =========================================================================

    async def batch_request(self, requests: Sequence[RequestLike]) -> list[BatchResult]:
        """
        Resolve several requests independently.

        Concurrent calls with the same target set share one pending batch
        and receive the same result list. The registration is dropped when
        the batch settles.

        Returns:
            One ``BatchResult`` per request, in input order
        """
        descriptors = [self._descriptor(r) for r in requests]
        key = batch_key(descriptors)

        pending = self._in_flight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._execute_batch(key, descriptors))
            self._in_flight[key] = pending
        else:
            logger.debug(f"Joining in-flight batch {key}")

        return await asyncio.shield(pending)

    async def _execute_batch(
        self, key: str, descriptors: list[RequestDescriptor]
    ) -> list[BatchResult]:
        try:
            outcomes = await asyncio.gather(
                *(self.make_request(d) for d in descriptors),
                return_exceptions=True,
            )
        finally:
            self._in_flight.pop(key, None)

        results = []
        for descriptor, outcome in zip(descriptors, outcomes):
            if isinstance(outcome, BaseException):
                results.append(
                    BatchResult(target=descriptor.target, success=False, error=str(outcome))
                )
            else:
                results.append(BatchResult(target=descriptor.target, success=True, data=outcome))
        return results

    async def preload(self, requests: Sequence[RequestLike]) -> None:
        """Warm the cache; individual failures are ignored."""
        outcomes = await asyncio.gather(
            *(self.make_request(self._descriptor(r)) for r in requests),
            return_exceptions=True,
        )
        failed = sum(1 for o in outcomes if isinstance(o, BaseException))
        if failed:
            logger.debug(f"Preload finished with {failed}/{len(outcomes)} failures")

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_stats(self) -> dict:
        return {
            "cache": self.cache.get_stats(),
            "in_flight_batches": len(self._in_flight),
        }

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
