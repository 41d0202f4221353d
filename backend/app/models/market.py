"""Canonical market data records.

Provider payloads are mapped onto these models by ``app.clients.normalizers``.
"""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, Field


class MarketRecord(BaseModel):
    """One coin in a market listing."""

    id: str
    name: str
    symbol: str
    price: float = 0.0
    change_24h: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0
    image: str = ""
    market_cap_rank: int = 0
    ath: float = 0.0
    ath_change_percentage: float = 0.0
    circulating_supply: float = 0.0
    total_supply: float = 0.0
    max_supply: float = 0.0
    trend: Literal["up", "down"] = "down"


class GlobalSnapshot(BaseModel):
    """Whole-market totals."""

    total_market_cap: float = 0.0
    total_volume: float = 0.0
    market_cap_percentage: dict[str, float] = Field(default_factory=dict)
    active_cryptocurrencies: int = 0
    markets: int = 0
    market_cap_change_percentage_24h_usd: float = 0.0


class TrendingRecord(BaseModel):
    """A coin from the trending list."""

    id: str
    name: str
    symbol: str
    market_cap_rank: int | None = None
    thumb: str | None = None
    score: float | None = 0


class SearchRecord(BaseModel):
    """A coin matching a search query."""

    id: str
    name: str
    symbol: str
    market_cap_rank: int | None = None
    thumb: str = ""
    large: str = ""


class CoinDetail(BaseModel):
    """Detail view of a single coin."""

    id: str
    name: str
    symbol: str
    current_price: float = 0.0
    market_cap: float = 0.0
    price_change_percentage_24h: float = 0.0
    volume_24h: float = 0.0
    market_cap_rank: int = 0
    ath: float = 0.0
    ath_change_percentage: float = 0.0
    circulating_supply: float = 0.0
    total_supply: float = 0.0
    max_supply: float = 0.0
    description: str = "No description available."
    image: str = ""


class PricePoint(BaseModel):
    timestamp: float  # Unix milliseconds
    price: float


class VolumePoint(BaseModel):
    timestamp: float  # Unix milliseconds
    volume: float


class ChartSeries(BaseModel):
    """Historical prices and volumes for one coin."""

    prices: list[PricePoint] = Field(default_factory=list)
    volumes: list[VolumePoint] = Field(default_factory=list)

    @property
    def closes(self) -> list[float]:
        return [p.price for p in self.prices]


class MoverRecord(BaseModel):
    """A coin in the gainers/losers lists."""

    id: str
    name: str
    symbol: str
    price: float | None = None
    change_24h: float | None = None
    image: str | None = None


class GainersLosers(BaseModel):
    gainers: list[MoverRecord] = Field(default_factory=list)
    losers: list[MoverRecord] = Field(default_factory=list)


class ApiResponse(BaseModel):
    """Envelope returned by the request layer for every normalized payload."""

    success: bool = True
    data: Any = None
    error: str | None = None
    timestamp: int = Field(default_factory=lambda: int(time.time()))
