"""Prediction engine: indicator aggregation and scoring."""

from core.prediction.engine import PredictionEngine
from core.prediction.offload import CalculationOffloader
from core.prediction.scoring import (
    WEIGHTS,
    TIMEFRAME_DAYS,
    calculate_prediction,
    calculate_risk_level,
    estimate_accuracy,
    generate_trading_signals,
    parse_timeframe,
    score_analysis,
)

__all__ = [
    "PredictionEngine",
    "CalculationOffloader",
    "WEIGHTS",
    "TIMEFRAME_DAYS",
    "calculate_prediction",
    "calculate_risk_level",
    "estimate_accuracy",
    "generate_trading_signals",
    "parse_timeframe",
    "score_analysis",
]
