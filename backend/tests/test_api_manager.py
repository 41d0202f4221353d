"""Tests for the request layer (cache, retry, timeout, batch coalescing)."""

import asyncio

import httpx
import pytest

from app.clients.coingecko_rest import MarketDataClient
from app.models.market import ApiResponse, GlobalSnapshot
from app.services.api_manager import APIManager, RequestDescriptor, batch_key
from app.storage.cache import CacheManager
from core.errors import NetworkError, ParseError, RequestTimeoutError

GLOBAL_PAYLOAD = {
    "data": {
        "total_market_cap": {"usd": 2.5e12},
        "total_volume": {"usd": 9.0e10},
        "market_cap_percentage": {"btc": 52.1},
        "active_cryptocurrencies": 10000,
        "markets": 900,
        "market_cap_change_percentage_24h_usd": 1.5,
    }
}


class FakeSource:
    """Data source replaying scripted outcomes per target."""

    def __init__(self, outcomes: dict | None = None, default=None):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.default = default
        self.calls: list[str] = []

    async def fetch(self, target: str):
        self.calls.append(target)
        await asyncio.sleep(0)
        script = self.outcomes.get(target)
        outcome = script.pop(0) if script else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class HangingSource:
    def __init__(self):
        self.calls = 0

    async def fetch(self, target: str):
        self.calls += 1
        await asyncio.Event().wait()


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


def make_manager(source, sleeper, **kwargs) -> APIManager:
    return APIManager(client=source, cache=CacheManager(), sleep=sleeper, **kwargs)


class TestMakeRequest:
    """Tests for single requests."""

    @pytest.mark.asyncio
    async def test_normalizes_into_envelope(self, sleeper):
        source = FakeSource(default=GLOBAL_PAYLOAD)
        api = make_manager(source, sleeper)

        response = await api.make_request("/api/global")

        assert isinstance(response, ApiResponse)
        assert response.success is True
        assert isinstance(response.data, GlobalSnapshot)
        assert response.data.total_market_cap == 2.5e12

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, sleeper):
        """A live cache entry is returned without calling the data source."""
        source = FakeSource(default=GLOBAL_PAYLOAD)
        api = make_manager(source, sleeper)
        cached = ApiResponse(data="cached")
        api.cache.set("global_data", cached, 60)

        response = await api.make_request("/api/global", cache_key="global_data")

        assert response is cached
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_success_is_cached(self, sleeper):
        source = FakeSource(default=GLOBAL_PAYLOAD)
        api = make_manager(source, sleeper)

        first = await api.make_request(
            RequestDescriptor("/api/global", cache_key="global_data", cache_ttl=60)
        )
        second = await api.make_request("/api/global", cache_key="global_data")

        assert second is first
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self, sleeper):
        """Two network failures then success: delays are 1s and 2s."""
        source = FakeSource(
            {"/api/global": [NetworkError("boom"), NetworkError("boom"), GLOBAL_PAYLOAD]}
        )
        api = make_manager(source, sleeper)

        response = await api.make_request("/api/global")

        assert response.success is True
        assert sleeper.delays == [1.0, 2.0]
        assert len(source.calls) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, sleeper):
        """After max_retries retries the last NetworkError propagates."""
        source = FakeSource(default=NetworkError("HTTP 503", status_code=503))
        api = make_manager(source, sleeper)

        with pytest.raises(NetworkError) as exc_info:
            await api.make_request("/api/global")

        assert exc_info.value.status_code == 503
        assert sleeper.delays == [1.0, 2.0, 4.0]
        assert len(source.calls) == 4

    @pytest.mark.asyncio
    async def test_custom_base_delay(self, sleeper):
        source = FakeSource({"/api/global": [NetworkError("x"), GLOBAL_PAYLOAD]})
        api = make_manager(source, sleeper, base_delay=0.5)

        await api.make_request("/api/global")

        assert sleeper.delays == [0.5]

    @pytest.mark.asyncio
    async def test_deadline_is_not_retried(self, sleeper):
        """A request exceeding the wall-clock deadline fails once."""
        source = HangingSource()
        api = make_manager(source, sleeper, timeout=0.01)

        with pytest.raises(RequestTimeoutError):
            await api.make_request("/api/global")

        assert source.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_client_timeout_is_not_retried(self, sleeper):
        source = FakeSource(default=RequestTimeoutError("timed out"))
        api = make_manager(source, sleeper)

        with pytest.raises(RequestTimeoutError):
            await api.make_request("/api/global")

        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_parse_error_is_not_retried_or_cached(self, sleeper):
        """A malformed payload surfaces immediately."""
        source = FakeSource(default={"unexpected": "shape"})
        api = make_manager(source, sleeper)

        with pytest.raises(ParseError):
            await api.make_request("/api/trends?limit=10", cache_key="trends")

        assert len(source.calls) == 1
        assert sleeper.delays == []
        assert api.cache.get("trends") is None


class TestBatchRequest:
    """Tests for batch coalescing and partial failure."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_batches_share_result(self, sleeper):
        """Batches with the same target set issued together get the same object."""
        source = FakeSource(default=GLOBAL_PAYLOAD)
        api = make_manager(source, sleeper)

        first, second = await asyncio.gather(
            api.batch_request(["/api/global", "/api/fear-greed"]),
            api.batch_request(["/api/fear-greed", "/api/global"]),
        )

        assert first is second
        assert sorted(source.calls) == ["/api/fear-greed", "/api/global"]

    @pytest.mark.asyncio
    async def test_batch_after_settlement_is_independent(self, sleeper):
        source = FakeSource(default=GLOBAL_PAYLOAD)
        api = make_manager(source, sleeper)

        first = await api.batch_request(["/api/global"])
        second = await api.batch_request(["/api/global"])

        assert first is not second
        assert len(source.calls) == 2
        assert api.get_stats()["in_flight_batches"] == 0

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_positions(self, sleeper):
        """A failing request only affects its own slot."""
        source = FakeSource(
            {
                "/api/global": [GLOBAL_PAYLOAD],
                "/api/trends?limit=5": [{"not": "a list"}],
                "/api/fear-greed": [{"data": [{"value": "40"}]}],
            }
        )
        api = make_manager(source, sleeper)

        results = await api.batch_request(
            ["/api/global", "/api/trends?limit=5", "/api/fear-greed"]
        )

        assert [r.target for r in results] == [
            "/api/global",
            "/api/trends?limit=5",
            "/api/fear-greed",
        ]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].data is None
        assert "Malformed" in results[1].error
        assert results[2].data.data == {"value": "40"}

    @pytest.mark.asyncio
    async def test_registration_removed_after_failure(self, sleeper):
        source = FakeSource(default={"bad": True})
        api = make_manager(source, sleeper)

        results = await api.batch_request(["/api/trends"])

        assert results[0].success is False
        assert api._in_flight == {}

    def test_batch_key_ignores_order_and_cache_policy(self):
        a = [RequestDescriptor("/b", cache_key="x"), RequestDescriptor("/a")]
        b = [RequestDescriptor("/a", cache_ttl=5), RequestDescriptor("/b")]
        assert batch_key(a) == batch_key(b)


class TestPreload:
    """Tests for best-effort cache warm-up."""

    @pytest.mark.asyncio
    async def test_preload_ignores_failures(self, sleeper):
        source = FakeSource(
            {
                "/api/global": [GLOBAL_PAYLOAD],
                "/api/trends": [{"bad": True}],
            }
        )
        api = make_manager(source, sleeper)

        await api.preload(
            [
                RequestDescriptor("/api/global", cache_key="global_data"),
                RequestDescriptor("/api/trends", cache_key="trends"),
            ]
        )

        assert api.cache.get("global_data") is not None
        assert api.cache.get("trends") is None

    @pytest.mark.asyncio
    async def test_clear_cache(self, sleeper):
        api = make_manager(FakeSource(), sleeper)
        api.cache.set("a", 1)

        api.clear_cache()

        assert api.get_stats()["cache"]["size"] == 0


class TestRateLimitedClient:
    """Tests for the deadline with a rate-limited market data client."""

    @pytest.mark.asyncio
    async def test_queued_requests_do_not_time_out(self, sleeper):
        """Waiting for a rate limiter slot does not count against the deadline."""
        hits = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(request.url.params["query"])
            return httpx.Response(200, json={"coins": []})

        # 0.1s spacing: eight calls span 0.7s, twice the per-request deadline
        client = MarketDataClient(transport=httpx.MockTransport(handler), calls_per_minute=600)
        api = APIManager(client=client, cache=CacheManager(), timeout=0.35, sleep=sleeper)
        targets = [f"/api/search?q=coin{i}" for i in range(8)]

        try:
            results = await api.batch_request(targets)
        finally:
            await api.close()

        assert [r.success for r in results] == [True] * 8
        assert sorted(hits) == sorted(f"coin{i}" for i in range(8))

    @pytest.mark.asyncio
    async def test_acquire_called_before_each_attempt(self, sleeper):
        order = []

        class PacedSource(FakeSource):
            async def acquire(self):
                order.append("acquire")

            async def fetch(self, target: str):
                order.append("fetch")
                return await super().fetch(target)

        source = PacedSource(
            {"/api/global": [NetworkError("HTTP 503: Service Unavailable", 503), GLOBAL_PAYLOAD]}
        )
        api = make_manager(source, sleeper)

        await api.make_request("/api/global")

        assert order == ["acquire", "fetch", "acquire", "fetch"]
