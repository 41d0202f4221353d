"""Response normalizers for market data provider payloads.

Each parser maps one provider JSON shape onto the canonical models in
``app.models.market`` and returns a tagged result: ``Ok`` with the
normalized value, or ``Err`` carrying a ``ParseError``. Nothing in this
module raises for a malformed payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

from pydantic import ValidationError as PydanticValidationError

from app.models.market import (
    ApiResponse,
    ChartSeries,
    CoinDetail,
    GainersLosers,
    GlobalSnapshot,
    MarketRecord,
    MoverRecord,
    PricePoint,
    SearchRecord,
    TrendingRecord,
    VolumePoint,
)
from core.errors import ParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SEARCH_RESULTS = 10
MOVERS_PER_SIDE = 10
DESCRIPTION_LIMIT = 500


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: ParseError


ParseResult = Ok[T] | Err


class ResourceKind(str, Enum):
    """Logical resources understood by the request layer."""

    MARKETS = "/api/trends"
    GLOBAL = "/api/global"
    TRENDING = "/api/trending"
    FEAR_GREED = "/api/fear-greed"
    GAINERS_LOSERS = "/api/gainers-losers"
    SEARCH = "/api/search"
    COIN = "/api/coin/"
    CHART = "/api/chart/"
    RAW = ""


def resource_kind(target: str) -> ResourceKind:
    """Classify a logical resource path such as ``/api/chart/bitcoin?days=30``."""
    path = target.split("?", 1)[0]
    for kind in ResourceKind:
        if kind is not ResourceKind.RAW and path.startswith(kind.value):
            return kind
    return ResourceKind.RAW


# =============================================================================
# Field helpers
# =============================================================================

def _num(value: Any) -> float:
    """Provider numbers may be null; treat null/0/'' as 0."""
    return float(value) if value else 0.0


def _int(value: Any) -> int:
    return int(value) if value else 0


def _usd(mapping: Any) -> float:
    if isinstance(mapping, dict):
        return _num(mapping.get("usd"))
    return 0.0


def _upper(value: Any) -> str:
    return str(value).upper() if value else ""


def _require_list(payload: Any, what: str) -> list:
    if not isinstance(payload, list):
        raise TypeError(f"{what} payload must be a list, got {type(payload).__name__}")
    return payload


def _require_dict(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise TypeError(f"{what} payload must be an object, got {type(payload).__name__}")
    return payload


# =============================================================================
# Parsers (raise on malformed input; wrapped by ``_tagged``)
# =============================================================================

def _market_records(payload: Any) -> list[MarketRecord]:
    records = []
    for coin in _require_list(payload, "markets"):
        change = _num(coin.get("price_change_percentage_24h"))
        records.append(
            MarketRecord(
                id=coin["id"],
                name=coin["name"],
                symbol=_upper(coin.get("symbol")),
                price=_num(coin.get("current_price")),
                change_24h=change,
                market_cap=_num(coin.get("market_cap")),
                volume_24h=_num(coin.get("total_volume")),
                image=coin.get("image") or "",
                market_cap_rank=_int(coin.get("market_cap_rank")),
                ath=_num(coin.get("ath")),
                ath_change_percentage=_num(coin.get("ath_change_percentage")),
                circulating_supply=_num(coin.get("circulating_supply")),
                total_supply=_num(coin.get("total_supply")),
                max_supply=_num(coin.get("max_supply")),
                trend="up" if change > 0 else "down",
            )
        )
    return records


def _global_snapshot(payload: Any) -> GlobalSnapshot:
    body = _require_dict(payload, "global")
    data = body.get("data") or body
    return GlobalSnapshot(
        total_market_cap=_usd(data.get("total_market_cap")),
        total_volume=_usd(data.get("total_volume")),
        market_cap_percentage=data.get("market_cap_percentage") or {},
        active_cryptocurrencies=_int(data.get("active_cryptocurrencies")),
        markets=_int(data.get("markets")),
        market_cap_change_percentage_24h_usd=_num(
            data.get("market_cap_change_percentage_24h_usd")
        ),
    )


def _trending(payload: Any) -> list[TrendingRecord]:
    body = _require_dict(payload, "trending")
    records = []
    for entry in body.get("coins") or []:
        coin = entry.get("item") or entry
        records.append(
            TrendingRecord(
                id=coin["id"],
                name=coin["name"],
                symbol=_upper(coin.get("symbol")),
                market_cap_rank=coin.get("market_cap_rank"),
                thumb=coin.get("thumb"),
                score=coin.get("score") or 0,
            )
        )
    return records


def _fear_greed(payload: Any) -> Any:
    if isinstance(payload, dict):
        entries = payload.get("data")
        if isinstance(entries, list) and entries:
            return entries[0]
    return payload


def _search(payload: Any) -> list[SearchRecord]:
    body = _require_dict(payload, "search")
    return [
        SearchRecord(
            id=coin["id"],
            name=coin["name"],
            symbol=_upper(coin.get("symbol")),
            market_cap_rank=coin.get("market_cap_rank"),
            thumb=coin.get("thumb") or "",
            large=coin.get("large") or "",
        )
        for coin in (body.get("coins") or [])[:MAX_SEARCH_RESULTS]
    ]


def _coin_detail(payload: Any) -> CoinDetail:
    body = _require_dict(payload, "coin")
    market = body.get("market_data") or {}
    description = (body.get("description") or {}).get("en") or ""
    return CoinDetail(
        id=body["id"],
        name=body["name"],
        symbol=_upper(body.get("symbol")),
        current_price=_usd(market.get("current_price")),
        market_cap=_usd(market.get("market_cap")),
        price_change_percentage_24h=_num(market.get("price_change_percentage_24h")),
        volume_24h=_usd(market.get("total_volume")),
        market_cap_rank=_int(body.get("market_cap_rank")),
        ath=_usd(market.get("ath")),
        ath_change_percentage=_usd(market.get("ath_change_percentage")),
        circulating_supply=_num(market.get("circulating_supply")),
        total_supply=_num(market.get("total_supply")),
        max_supply=_num(market.get("max_supply")),
        description=description[:DESCRIPTION_LIMIT] or "No description available.",
        image=(body.get("image") or {}).get("large") or "",
    )


def _chart(payload: Any) -> ChartSeries:
    body = _require_dict(payload, "chart")
    return ChartSeries(
        prices=[PricePoint(timestamp=ts, price=p) for ts, p in body.get("prices") or []],
        volumes=[
            VolumePoint(timestamp=ts, volume=v) for ts, v in body.get("total_volumes") or []
        ],
    )


def _mover(coin: dict) -> MoverRecord:
    return MoverRecord(
        id=coin["id"],
        name=coin["name"],
        symbol=_upper(coin.get("symbol")),
        price=coin.get("current_price"),
        change_24h=coin.get("price_change_percentage_24h"),
        image=coin.get("image"),
    )


def _gainers_losers(payload: Any) -> GainersLosers:
    coins = _require_list(payload, "gainers/losers")
    return GainersLosers(
        gainers=[_mover(c) for c in coins[:MOVERS_PER_SIDE]],
        losers=[_mover(c) for c in reversed(coins[-MOVERS_PER_SIDE:])],
    )


_PARSERS: dict[ResourceKind, Callable[[Any], Any]] = {
    ResourceKind.MARKETS: _market_records,
    ResourceKind.GLOBAL: _global_snapshot,
    ResourceKind.TRENDING: _trending,
    ResourceKind.FEAR_GREED: _fear_greed,
    ResourceKind.GAINERS_LOSERS: _gainers_losers,
    ResourceKind.SEARCH: _search,
    ResourceKind.COIN: _coin_detail,
    ResourceKind.CHART: _chart,
    ResourceKind.RAW: lambda payload: payload,
}


def _tagged(kind: ResourceKind, parser: Callable[[Any], T], payload: Any) -> ParseResult:
    try:
        return Ok(parser(payload))
    except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as e:
        logger.debug(f"Failed to normalize {kind.name} payload: {e}")
        return Err(ParseError(f"Malformed {kind.name.lower()} payload: {e}"))


# =============================================================================
# Public API
# =============================================================================

def parse_payload(kind: ResourceKind, payload: Any) -> ParseResult:
    """Normalize ``payload`` for a resource kind without wrapping it."""
    return _tagged(kind, _PARSERS[kind], payload)


def normalize_response(target: str, payload: Any) -> ParseResult:
    """
    Normalize a raw provider payload for a logical resource.

    Args:
        target: Logical resource path (e.g. ``/api/trends?limit=10``)
        payload: Decoded provider JSON

    Returns:
        ``Ok(ApiResponse)`` on success, ``Err(ParseError)`` otherwise
    """
    result = parse_payload(resource_kind(target), payload)
    if isinstance(result, Err):
        return result
    return Ok(ApiResponse(success=True, data=result.value))
