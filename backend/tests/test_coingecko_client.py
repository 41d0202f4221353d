"""Tests for the market data REST client."""

import asyncio

import httpx
import pytest

from app.clients.coingecko_rest import MarketDataClient, RateLimiter
from core.errors import NetworkError, ParseError, RequestTimeoutError

BASE = "https://api.coingecko.com/api/v3"


def make_client(handler) -> MarketDataClient:
    return MarketDataClient(
        transport=httpx.MockTransport(handler),
        calls_per_minute=0,
    )


class TestResourceMapping:
    """Tests for logical resource -> provider URL mapping."""

    @pytest.fixture
    def client(self):
        return MarketDataClient()

    def test_trends(self, client):
        request = client.to_provider_request("/api/trends?timeframe=24h&market=all&limit=25")

        assert request.url == f"{BASE}/coins/markets"
        assert request.params["per_page"] == "25"
        assert request.params["order"] == "market_cap_desc"
        assert request.params["price_change_percentage"] == "1h,24h,7d,30d"
        assert "category" not in request.params

    def test_trends_category(self, client):
        request = client.to_provider_request("/api/trends?market=defi&limit=10")
        assert request.params["category"] == "decentralized-finance-defi"

    def test_trends_unknown_market_has_no_category(self, client):
        request = client.to_provider_request("/api/trends?market=crypto")
        assert "category" not in request.params

    def test_gainers_losers(self, client):
        request = client.to_provider_request("/api/gainers-losers")

        assert request.url == f"{BASE}/coins/markets"
        assert request.params["order"] == "price_change_percentage_24h_desc"
        assert request.params["per_page"] == "50"

    def test_simple_endpoints(self, client):
        assert client.to_provider_request("/api/global").url == f"{BASE}/global"
        assert client.to_provider_request("/api/trending").url == f"{BASE}/search/trending"
        assert client.to_provider_request("/api/fear-greed").url == "https://api.alternative.me/fng/"

    def test_search(self, client):
        request = client.to_provider_request("/api/search?q=doge%20coin")

        assert request.url == f"{BASE}/search"
        assert request.params == {"query": "doge coin"}

    def test_coin(self, client):
        request = client.to_provider_request("/api/coin/bitcoin")

        assert request.url == f"{BASE}/coins/bitcoin"
        assert request.params["market_data"] == "true"
        assert request.params["tickers"] == "false"

    @pytest.mark.parametrize(
        "days,interval",
        [("1", "hourly"), ("30", None), ("90", None), ("365", "daily")],
    )
    def test_chart_interval(self, client, days, interval):
        request = client.to_provider_request(f"/api/chart/bitcoin?days={days}")

        assert request.url == f"{BASE}/coins/bitcoin/market_chart"
        assert request.params["days"] == days
        assert request.params["vs_currency"] == "usd"
        assert request.params.get("interval") == interval


class TestFetch:
    """Tests for HTTP handling and error mapping."""

    @pytest.mark.asyncio
    async def test_fetch_decodes_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"data": {"markets": 1}})

        client = make_client(handler)
        payload = await client.fetch("/api/global")
        await client.close()

        assert payload == {"data": {"markets": 1}}
        assert seen["url"] == f"{BASE}/global"
        assert seen["headers"]["accept"] == "application/json"
        assert seen["headers"]["user-agent"] == "TrendBot/2.0"

    @pytest.mark.asyncio
    async def test_non_2xx_is_network_error(self):
        client = make_client(lambda request: httpx.Response(429, text="slow down"))

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch("/api/global")

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(NetworkError) as exc_info:
            await client.fetch("/api/global")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        with pytest.raises(RequestTimeoutError):
            await client.fetch("/api/global")

    @pytest.mark.asyncio
    async def test_bad_content_encoding_is_parse_error(self):
        """A body that fails Content-Encoding decoding maps to ParseError."""
        client = make_client(
            lambda request: httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not gzip data"
            )
        )

        with pytest.raises(ParseError):
            await client.fetch("/api/global")

    @pytest.mark.asyncio
    async def test_other_request_errors_are_network_errors(self):
        def handler(request):
            raise httpx.TooManyRedirects("redirect loop", request=request)

        client = make_client(handler)
        with pytest.raises(NetworkError):
            await client.fetch("/api/global")

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ParseError):
            await client.fetch("/api/global")


class TestRateLimiter:
    """Tests for the call spacing limiter."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self):
        limiter = RateLimiter(calls_per_minute=1)
        await limiter.acquire()
        assert limiter.last_call is not None

    def test_zero_rate_disables_spacing(self):
        assert RateLimiter(calls_per_minute=0).interval == 0.0

    @pytest.mark.asyncio
    async def test_fetch_does_not_wait_on_limiter(self):
        """Pacing is the caller's job; fetch itself never blocks on the limiter."""
        client = MarketDataClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
            calls_per_minute=1,
        )

        await asyncio.wait_for(
            asyncio.gather(client.fetch("/api/global"), client.fetch("/api/global")), timeout=1.0
        )
        await client.close()

        assert client.rate_limiter.last_call is None

    @pytest.mark.asyncio
    async def test_acquire_spaces_calls(self):
        client = MarketDataClient(calls_per_minute=600)
        loop = asyncio.get_running_loop()

        start = loop.time()
        for _ in range(3):
            await client.acquire()

        assert loop.time() - start >= 0.19
