"""Market data REST client (CoinGecko and the fear/greed index)."""

import asyncio
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

import httpx
import orjson

from app.clients.normalizers import ResourceKind, resource_kind
from core.errors import NetworkError, ParseError, RequestTimeoutError

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
FEAR_GREED_URL = "https://api.alternative.me/fng/"

# Dashboard market filter -> provider category id
MARKET_CATEGORIES = {
    "defi": "decentralized-finance-defi",
    "nft": "non-fungible-tokens-nft",
    "gaming": "gaming",
    "layer-1": "layer-1",
    "layer-2": "layer-2",
}


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 30):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute if calls_per_minute > 0 else 0.0
        self.last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self.last_call is not None:
                wait_time = self.last_call + self.interval - loop.time()
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self.last_call = loop.time()


@dataclass(slots=True, frozen=True)
class ProviderRequest:
    """Concrete provider URL and query for a logical resource."""

    url: str
    params: dict[str, str] = field(default_factory=dict)


def _query(target: str) -> dict[str, str]:
    _, _, query = target.partition("?")
    return dict(parse_qsl(query))


def _resource_id(target: str, prefix: str) -> str:
    return target.split("?", 1)[0][len(prefix):].strip("/")


class MarketDataClient:
    """Async HTTP client for the public market data provider."""

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
        fear_greed_url: str = FEAR_GREED_URL,
        user_agent: str = "TrendBot/2.0",
        timeout: float = 15.0,
        calls_per_minute: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.fear_greed_url = fear_greed_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={
                    "Accept": "application/json",
                    "User-Agent": self.user_agent,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def acquire(self) -> None:
        """Wait for a rate limiter slot; call before each ``fetch``."""
        await self.rate_limiter.acquire()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Resource mapping
    # =========================================================================

    def to_provider_request(self, target: str) -> ProviderRequest:
        """
        Map a logical resource path onto the provider endpoint.

        Args:
            target: Logical path such as ``/api/chart/bitcoin?days=30``;
                anything unrecognized is requested as-is

        Returns:
            ProviderRequest with absolute URL and query parameters
        """
        kind = resource_kind(target)
        query = _query(target)

        if kind is ResourceKind.MARKETS:
            params = {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": query.get("limit", "10"),
                "page": "1",
                "sparkline": "false",
                "price_change_percentage": "1h,24h,7d,30d",
            }
            category = MARKET_CATEGORIES.get(query.get("market", "all"))
            if category:
                params["category"] = category
            return ProviderRequest(f"{self.base_url}/coins/markets", params)

        if kind is ResourceKind.GAINERS_LOSERS:
            return ProviderRequest(
                f"{self.base_url}/coins/markets",
                {
                    "vs_currency": "usd",
                    "order": "price_change_percentage_24h_desc",
                    "per_page": "50",
                    "page": "1",
                    "sparkline": "false",
                    "price_change_percentage": "24h",
                },
            )

        if kind is ResourceKind.GLOBAL:
            return ProviderRequest(f"{self.base_url}/global")

        if kind is ResourceKind.TRENDING:
            return ProviderRequest(f"{self.base_url}/search/trending")

        if kind is ResourceKind.FEAR_GREED:
            return ProviderRequest(self.fear_greed_url)

        if kind is ResourceKind.SEARCH:
            return ProviderRequest(f"{self.base_url}/search", {"query": query.get("q", "")})

        if kind is ResourceKind.COIN:
            coin_id = _resource_id(target, ResourceKind.COIN.value)
            return ProviderRequest(
                f"{self.base_url}/coins/{coin_id}",
                {
                    "localization": "false",
                    "tickers": "false",
                    "market_data": "true",
                    "community_data": "true",
                    "developer_data": "true",
                    "sparkline": "false",
                },
            )

        if kind is ResourceKind.CHART:
            coin_id = _resource_id(target, ResourceKind.CHART.value)
            days = query.get("days", "7")
            params = {"vs_currency": query.get("vs_currency", "usd"), "days": days}
            if days == "1":
                params["interval"] = "hourly"
            elif days.isdigit() and int(days) > 90:
                params["interval"] = "daily"
            return ProviderRequest(f"{self.base_url}/coins/{coin_id}/market_chart", params)

        url, _, _ = target.partition("?")
        return ProviderRequest(url, query)

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch(self, target: str) -> Any:
        """
        Fetch the raw provider payload for a logical resource.

        Does not wait on the rate limiter; callers pace requests with
        ``acquire``.

        Raises:
            RequestTimeoutError: The transport timed out
            NetworkError: Transport failure or non-2xx status
            ParseError: Body is not valid JSON or cannot be decoded
        """
        request = self.to_provider_request(target)
        client = await self._get_client()

        try:
            response = await client.get(request.url, params=request.params or None)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request to {request.url} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {request.url} failed: {e}") from e
        except httpx.DecodingError as e:
            raise ParseError(f"Undecodable response from {request.url}: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request to {request.url} failed: {e}") from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON from {request.url}: {e}") from e
