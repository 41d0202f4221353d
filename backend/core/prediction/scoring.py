"""Weighted scoring of a CompleteAnalysis into a Prediction.

All functions are deterministic and side-effect free.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from core.models.analysis import CompleteAnalysis
from core.models.prediction import Prediction, PriceTargets, TradingSignal

# Indicator weights. Volatility is reserved for target sizing and does not
# contribute to the directional score.
WEIGHTS: dict[str, float] = {
    "trend": 0.30,
    "rsi": 0.15,
    "macd": 0.20,
    "bollinger": 0.15,
    "momentum": 0.10,
    "volatility": 0.10,
}

# Contribution of a band break, as a fraction of the bollinger weight
BAND_BREAK_FACTOR = 0.8

# Horizon (symbolic) -> days
TIMEFRAME_DAYS: dict[str, float] = {
    "1h": 1 / 24,
    "4h": 1 / 6,
    "1d": 1,
    "3d": 3,
    "7d": 7,
    "14d": 14,
    "30d": 30,
}
DEFAULT_TIMEFRAME_DAYS = 7.0

RISK_ORDER = ("low", "medium", "high")


@dataclass(slots=True, frozen=True)
class DirectionalScore:
    bullish: float
    bearish: float

    @property
    def net(self) -> float:
        return self.bullish - self.bearish

    @property
    def confidence(self) -> float:
        return min(abs(self.net), 1.0)

    @property
    def direction(self) -> str:
        return "bullish" if self.net > 0 else "bearish"


def parse_timeframe(timeframe: str) -> float:
    """Map a symbolic horizon (``1h`` ... ``30d``) to days; unknown -> 7."""
    return float(TIMEFRAME_DAYS.get(timeframe, DEFAULT_TIMEFRAME_DAYS))


def score_analysis(analysis: CompleteAnalysis) -> DirectionalScore:
    """Accumulate weighted bullish and bearish evidence.

    Each indicator adds to at most one side.
    """
    bullish = 0.0
    bearish = 0.0

    trend = analysis.trend
    if trend.direction == "bullish":
        bullish += WEIGHTS["trend"] * trend.confidence
    elif trend.direction == "bearish":
        bearish += WEIGHTS["trend"] * trend.confidence

    rsi = analysis.rsi
    if rsi.signal == "oversold":
        bullish += WEIGHTS["rsi"] * rsi.strength
    elif rsi.signal == "overbought":
        bearish += WEIGHTS["rsi"] * rsi.strength

    macd = analysis.macd
    if macd.trend == "bullish":
        bullish += WEIGHTS["macd"] * macd.strength
    elif macd.trend == "bearish":
        bearish += WEIGHTS["macd"] * macd.strength

    bands = analysis.bollinger
    if bands.position == "below_lower":
        bullish += WEIGHTS["bollinger"] * BAND_BREAK_FACTOR
    elif bands.position == "above_upper":
        bearish += WEIGHTS["bollinger"] * BAND_BREAK_FACTOR

    mom = analysis.momentum
    if mom.direction == "positive" and mom.signal == "strong":
        bullish += WEIGHTS["momentum"]
    elif mom.direction == "negative":
        bearish += WEIGHTS["momentum"]

    return DirectionalScore(bullish=bullish, bearish=bearish)


def calculate_price_targets(
    current_price: float,
    analysis: CompleteAnalysis,
    base_change: float,
    days: float,
) -> PriceTargets:
    """Conservative/moderate/aggressive targets bounded by nearby levels."""
    daily_vol = analysis.volatility.daily
    levels = analysis.support_resistance

    support = levels.nearest_support
    if support is None:
        support = current_price * 0.9
    resistance = levels.nearest_resistance
    if resistance is None:
        resistance = current_price * 1.1

    conservative = current_price + base_change * 0.5
    moderate = current_price + base_change
    aggressive = current_price + base_change * 1.5

    return PriceTargets(
        conservative=max(conservative, support),
        moderate=moderate,
        aggressive=min(aggressive, resistance),
        support=support,
        resistance=resistance,
        stop_loss=current_price - daily_vol * current_price * math.sqrt(days) * 2,
    )


def generate_trading_signals(analysis: CompleteAnalysis) -> tuple[TradingSignal, ...]:
    """Independent per-indicator signals; buy and sell may co-occur."""
    signals: list[TradingSignal] = []

    crossover = analysis.trend.crossover
    if crossover == "golden_cross":
        signals.append(TradingSignal(type="buy", strength="strong", reason="Golden Cross detected"))
    elif crossover == "death_cross":
        signals.append(TradingSignal(type="sell", strength="strong", reason="Death Cross detected"))

    rsi = analysis.rsi
    if rsi.signal == "oversold":
        signals.append(TradingSignal(type="buy", strength="medium", reason="RSI oversold condition"))
    elif rsi.signal == "overbought":
        signals.append(TradingSignal(type="sell", strength="medium", reason="RSI overbought condition"))

    macd = analysis.macd
    if macd.histogram > 0 and macd.trend == "bullish":
        signals.append(TradingSignal(type="buy", strength="medium", reason="MACD bullish momentum"))
    elif macd.histogram < 0 and macd.trend == "bearish":
        signals.append(TradingSignal(type="sell", strength="medium", reason="MACD bearish momentum"))

    position = analysis.bollinger.position
    if position == "below_lower":
        signals.append(
            TradingSignal(type="buy", strength="medium", reason="Price below lower Bollinger Band")
        )
    elif position == "above_upper":
        signals.append(
            TradingSignal(type="sell", strength="medium", reason="Price above upper Bollinger Band")
        )

    return tuple(signals)


def risk_score(analysis: CompleteAnalysis) -> int:
    score = {"high": 3, "medium": 2}.get(analysis.volatility.level, 1)

    if analysis.trend.confidence < 0.3:
        score += 2
    if analysis.rsi.signal != "neutral":
        score += 1
    if analysis.bollinger.squeeze == "tight":
        score += 2

    return score


def calculate_risk_level(analysis: CompleteAnalysis) -> str:
    """``low`` (<=3), ``medium`` (<=6) or ``high``."""
    score = risk_score(analysis)
    if score <= 3:
        return "low"
    if score <= 6:
        return "medium"
    return "high"


def estimate_accuracy(
    analysis: CompleteAnalysis,
    days: float,
    signals: tuple[TradingSignal, ...] | None = None,
) -> float:
    """Heuristic accuracy estimate clamped to [0.3, 0.9]."""
    accuracy = 0.5

    if days <= 1:
        accuracy += 0.2
    elif days <= 7:
        accuracy += 0.1
    elif days > 30:
        accuracy -= 0.1

    confidence = analysis.trend.confidence
    if confidence > 0.7:
        accuracy += 0.15
    elif confidence < 0.3:
        accuracy -= 0.1

    level = analysis.volatility.level
    if level == "high":
        accuracy -= 0.15
    elif level == "low":
        accuracy += 0.1

    if signals is None:
        signals = generate_trading_signals(analysis)
    buys = sum(1 for s in signals if s.type == "buy")
    sells = sum(1 for s in signals if s.type == "sell")
    if abs(buys - sells) >= 2:
        accuracy += 0.1

    return max(0.3, min(0.9, accuracy))


def calculate_prediction(
    current_price: float,
    analysis: CompleteAnalysis,
    timeframe: str,
) -> Prediction:
    """
    Derive a Prediction from a completed analysis.

    Args:
        current_price: Last price of the analyzed series
        analysis: Indicator results for the series
        timeframe: Symbolic horizon, e.g. ``7d``

    Returns:
        Prediction with direction, confidence, targets, signals, risk and
        accuracy estimate
    """
    days = parse_timeframe(timeframe)
    score = score_analysis(analysis)

    base_change = score.net * analysis.volatility.daily * days * current_price
    signals = generate_trading_signals(analysis)

    return Prediction(
        direction=score.direction,
        confidence=score.confidence,
        current_price=current_price,
        targets=calculate_price_targets(current_price, analysis, base_change, days),
        signals=signals,
        risk_level=calculate_risk_level(analysis),
        accuracy=estimate_accuracy(analysis, days, signals),
        timeframe_days=days,
    )
