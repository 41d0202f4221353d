"""Indicator result models.

Results are produced on every prediction, so they use slotted frozen
dataclasses with plain floats rather than Pydantic models. Instances are
never mutated after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

RsiSignal = Literal["overbought", "oversold", "neutral"]
MacdTrend = Literal["bullish", "bearish", "neutral"]
BandPosition = Literal["above_upper", "below_lower", "middle"]
Squeeze = Literal["tight", "normal", "wide"]
TrendDirection = Literal["bullish", "bearish", "neutral"]
Crossover = Literal["golden_cross", "death_cross"]
VolatilityLevel = Literal["low", "medium", "high"]


@dataclass(slots=True, frozen=True)
class RsiResult:
    value: float = 50.0
    signal: RsiSignal = "neutral"
    strength: float = 0.0


@dataclass(slots=True, frozen=True)
class MacdResult:
    macd: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0
    trend: MacdTrend = "neutral"
    strength: float = 0.0


@dataclass(slots=True, frozen=True)
class BollingerResult:
    upper: float
    middle: float
    lower: float
    width: float
    position: BandPosition = "middle"
    squeeze: Squeeze = "normal"


@dataclass(slots=True, frozen=True)
class FibonacciLevel:
    level: str
    price: float
    distance: float  # relative to current price


@dataclass(slots=True, frozen=True)
class FibonacciResult:
    levels: dict[str, float]
    nearest: FibonacciLevel | None = None
    trend: Literal["uptrend", "downtrend", "neutral"] = "neutral"


@dataclass(slots=True, frozen=True)
class PriceLevel:
    """A support or resistance level and its number of historical touches."""

    price: float
    index: int
    strength: int


@dataclass(slots=True, frozen=True)
class SupportResistanceResult:
    supports: tuple[PriceLevel, ...]
    resistances: tuple[PriceLevel, ...]
    current_price: float

    @property
    def nearest_support(self) -> float | None:
        return self.supports[0].price if self.supports else None

    @property
    def nearest_resistance(self) -> float | None:
        return self.resistances[0].price if self.resistances else None


@dataclass(slots=True, frozen=True)
class MomentumResult:
    current: float = 0.0
    average: float = 0.0
    signal: Literal["strong", "weak", "neutral"] = "neutral"
    direction: Literal["positive", "negative", "neutral"] = "neutral"


@dataclass(slots=True, frozen=True)
class VolatilityResult:
    daily: float = 0.0
    annualized: float = 0.0
    level: VolatilityLevel = "low"
    percentile: float = 0.5


@dataclass(slots=True, frozen=True)
class TrendStrength:
    """Regression slope and correlation over the most recent prices."""

    slope: float = 0.0
    correlation: float = 0.0
    strength: float = 0.0
    direction: Literal["up", "down", "neutral"] = "neutral"


@dataclass(slots=True, frozen=True)
class TrendResult:
    direction: TrendDirection = "neutral"
    strength: TrendStrength = field(default_factory=TrendStrength)
    momentum: Literal["accelerating", "decelerating", "neutral"] = "neutral"
    crossover: Crossover | None = None
    confidence: float = 0.0


@dataclass(slots=True, frozen=True)
class CompleteAnalysis:
    """Every indicator computed for one price series snapshot."""

    trend: TrendResult
    rsi: RsiResult
    macd: MacdResult
    bollinger: BollingerResult
    fibonacci: FibonacciResult
    support_resistance: SupportResistanceResult
    momentum: MomentumResult
    volatility: VolatilityResult
