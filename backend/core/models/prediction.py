"""Prediction models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from core.models.analysis import CompleteAnalysis


class TradingSignal(BaseModel):
    """A single buy/sell hint derived from one indicator."""

    model_config = ConfigDict(frozen=True)

    type: Literal["buy", "sell"]
    strength: Literal["weak", "medium", "strong"]
    reason: str


class PriceTargets(BaseModel):
    """Projected prices for the prediction horizon."""

    model_config = ConfigDict(frozen=True)

    conservative: float
    moderate: float
    aggressive: float
    support: float
    resistance: float
    stop_loss: float


class Prediction(BaseModel):
    """Directional call for one coin over one horizon."""

    model_config = ConfigDict(frozen=True)

    direction: Literal["bullish", "bearish"]
    confidence: float = Field(ge=0.0, le=1.0)
    current_price: float
    targets: PriceTargets
    signals: tuple[TradingSignal, ...] = ()
    risk_level: Literal["low", "medium", "high"]
    accuracy: float = Field(ge=0.0, le=1.0)
    timeframe_days: float


@dataclass(slots=True, frozen=True)
class PredictionRecord:
    """Last prediction kept per coin, with the analysis that produced it."""

    coin_id: str
    timeframe: str
    prediction: Prediction
    analysis: CompleteAnalysis
    timestamp: float  # Unix seconds
    processing_time_ms: float
