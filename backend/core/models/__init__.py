"""Core data models."""

from core.models.analysis import (
    BollingerResult,
    CompleteAnalysis,
    FibonacciLevel,
    FibonacciResult,
    MacdResult,
    MomentumResult,
    PriceLevel,
    RsiResult,
    SupportResistanceResult,
    TrendResult,
    TrendStrength,
    VolatilityResult,
)
from core.models.prediction import Prediction, PredictionRecord, PriceTargets, TradingSignal
from core.models.series import PriceSeries

__all__ = [
    "BollingerResult",
    "CompleteAnalysis",
    "FibonacciLevel",
    "FibonacciResult",
    "MacdResult",
    "MomentumResult",
    "PriceLevel",
    "RsiResult",
    "SupportResistanceResult",
    "TrendResult",
    "TrendStrength",
    "VolatilityResult",
    "Prediction",
    "PredictionRecord",
    "PriceTargets",
    "TradingSignal",
    "PriceSeries",
]
