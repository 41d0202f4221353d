"""Data models."""

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
from app.models.portfolio import (
    Holding,
    HoldingValuation,
    PortfolioSummary,
    PriceAlert,
)

__all__ = [
    "ApiResponse",
    "ChartSeries",
    "CoinDetail",
    "GainersLosers",
    "GlobalSnapshot",
    "MarketRecord",
    "MoverRecord",
    "PricePoint",
    "SearchRecord",
    "TrendingRecord",
    "VolumePoint",
    "Holding",
    "HoldingValuation",
    "PortfolioSummary",
    "PriceAlert",
]
