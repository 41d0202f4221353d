"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    simple_moving_average,
    exponential_moving_average,
    relative_strength_index,
    macd,
    bollinger_bands,
    fibonacci_retracement,
    support_resistance,
    level_strength,
    momentum,
    volatility,
    trend_analysis,
    trend_strength,
    detect_crossover,
    IndicatorCalculator,
)
from core.indicators.calculations import (
    correlation,
    linear_regression,
    volatility_stats,
    calculate_sync,
)

__all__ = [
    "simple_moving_average",
    "exponential_moving_average",
    "relative_strength_index",
    "macd",
    "bollinger_bands",
    "fibonacci_retracement",
    "support_resistance",
    "level_strength",
    "momentum",
    "volatility",
    "trend_analysis",
    "trend_strength",
    "detect_crossover",
    "IndicatorCalculator",
    "correlation",
    "linear_regression",
    "volatility_stats",
    "calculate_sync",
]
