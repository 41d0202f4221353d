"""Technical indicators over an ordered price series.

Every indicator is a pure function of its inputs. When the series is too
short for an indicator's window, the indicator returns a well-defined
neutral result instead of raising.

``IndicatorCalculator`` wraps the same functions and memoizes the moving
averages, which are shared by MACD, Bollinger Bands and trend analysis.
"""

from __future__ import annotations

import hashlib
import math
from typing import Sequence

import numpy as np

from core.indicators.calculations import (
    correlation,
    linear_regression,
    volatility_stats,
)
from core.models.analysis import (
    BollingerResult,
    CompleteAnalysis,
    Crossover,
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

# RSI thresholds
RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0

# MACD periods
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

# Bollinger squeeze thresholds (band width relative to the mean)
SQUEEZE_TIGHT = 0.1
SQUEEZE_WIDE = 0.3

# Annualized volatility thresholds
VOLATILITY_LOW = 0.2
VOLATILITY_HIGH = 0.5

# Points used for regression/correlation in trend analysis
TREND_LOOKBACK = 20

# Relative band around a level counted as a "touch"
LEVEL_TOLERANCE = 0.02

FIBONACCI_RATIOS: dict[str, float] = {
    "0%": 0.0,
    "23.6%": 0.236,
    "38.2%": 0.382,
    "50%": 0.5,
    "61.8%": 0.618,
    "78.6%": 0.786,
    "100%": 1.0,
}


def _to_array(prices: Sequence[float]) -> np.ndarray:
    return np.asarray(prices, dtype=np.float64)


def _last(prices: Sequence[float]) -> float:
    return float(prices[-1]) if len(prices) else 0.0


# =============================================================================
# Moving averages
# =============================================================================

def simple_moving_average(prices: Sequence[float], period: int = 20) -> list[float]:
    """
    Calculate Simple Moving Average.

    Args:
        prices: Ordered price series
        period: Window length

    Returns:
        One value per index >= period - 1 (empty if the series is shorter
        than ``period``)
    """
    if period <= 0 or len(prices) < period:
        return []

    arr = _to_array(prices)
    running = np.concatenate(([0.0], np.cumsum(arr)))
    window_sums = running[period:] - running[:-period]
    return [float(v) for v in window_sums / period]


def exponential_moving_average(prices: Sequence[float], period: int = 20) -> list[float]:
    """
    Calculate Exponential Moving Average seeded with the first price.

    Args:
        prices: Ordered price series
        period: EMA period, multiplier is ``2 / (period + 1)``

    Returns:
        List of EMA values, same length as the input
    """
    if len(prices) == 0:
        return []

    arr = _to_array(prices)
    multiplier = 2.0 / (period + 1)

    result = np.empty_like(arr)
    result[0] = arr[0]
    for i in range(1, len(arr)):
        result[i] = arr[i] * multiplier + result[i - 1] * (1 - multiplier)

    return [float(v) for v in result]


# =============================================================================
# Oscillators
# =============================================================================

def relative_strength_index(prices: Sequence[float], period: int = 14) -> RsiResult:
    """
    Calculate RSI using Wilder's smoothing.

    Args:
        prices: Ordered price series
        period: RSI period

    Returns:
        RsiResult; neutral (50) when fewer than ``period + 1`` prices
    """
    if len(prices) < period + 1:
        return RsiResult()

    changes = np.diff(_to_array(prices))
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = float(gains[:period].sum() / period)
    avg_loss = float(losses[:period].sum() / period)

    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
    rsi = 100.0 - 100.0 / (1.0 + rs)

    if rsi > RSI_OVERBOUGHT:
        signal = "overbought"
    elif rsi < RSI_OVERSOLD:
        signal = "oversold"
    else:
        signal = "neutral"

    return RsiResult(value=float(rsi), signal=signal, strength=abs(50.0 - rsi) / 50.0)


def macd_from_emas(fast_ema: Sequence[float], slow_ema: Sequence[float]) -> MacdResult:
    """Build the MACD result from precomputed fast and slow EMAs."""
    start = MACD_SLOW - 1
    overlap = min(len(fast_ema), len(slow_ema))
    if overlap <= start:
        return MacdResult()

    macd_line = _to_array(fast_ema[start:overlap]) - _to_array(slow_ema[start:overlap])
    signal_line = exponential_moving_average(macd_line, MACD_SIGNAL)

    current_macd = float(macd_line[-1])
    current_signal = float(signal_line[-1])

    return MacdResult(
        macd=current_macd,
        signal=current_signal,
        histogram=current_macd - current_signal,
        trend="bullish" if current_macd > current_signal else "bearish",
        strength=abs(current_macd - current_signal) / max(abs(current_macd), 0.001),
    )


def macd(prices: Sequence[float]) -> MacdResult:
    """
    Calculate MACD (12/26/9).

    Args:
        prices: Ordered price series

    Returns:
        MacdResult for the latest bar; all-zero neutral result when fewer
        than 26 prices
    """
    if len(prices) < MACD_SLOW:
        return MacdResult()
    return macd_from_emas(
        exponential_moving_average(prices, MACD_FAST),
        exponential_moving_average(prices, MACD_SLOW),
    )


def _fallback_bands(current_price: float) -> BollingerResult:
    return BollingerResult(
        upper=current_price * 1.1,
        middle=current_price,
        lower=current_price * 0.9,
        width=0.2,
    )


def bollinger_from_sma(
    prices: Sequence[float],
    sma: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerResult:
    """Build Bollinger Bands for the latest bar from a precomputed SMA."""
    current_price = _last(prices)
    if len(prices) < period or not sma:
        return _fallback_bands(current_price)

    window = _to_array(prices[-period:])
    mean = float(sma[-1])
    sigma = math.sqrt(float(((window - mean) ** 2).sum()) / period)

    upper = mean + sigma * std_dev
    lower = mean - sigma * std_dev
    width = (sigma * std_dev * 2) / mean if mean != 0 else 0.0

    if current_price > upper:
        position = "above_upper"
    elif current_price < lower:
        position = "below_lower"
    else:
        position = "middle"

    if width < SQUEEZE_TIGHT:
        squeeze = "tight"
    elif width > SQUEEZE_WIDE:
        squeeze = "wide"
    else:
        squeeze = "normal"

    return BollingerResult(
        upper=upper,
        middle=mean,
        lower=lower,
        width=width,
        position=position,
        squeeze=squeeze,
    )


def bollinger_bands(
    prices: Sequence[float], period: int = 20, std_dev: float = 2.0
) -> BollingerResult:
    """
    Calculate Bollinger Bands for the latest bar.

    Args:
        prices: Ordered price series
        period: SMA window
        std_dev: Band multiplier

    Returns:
        BollingerResult; bands at +/-10% of the last price when fewer
        than ``period`` prices
    """
    return bollinger_from_sma(prices, simple_moving_average(prices, period), period, std_dev)


# =============================================================================
# Levels
# =============================================================================

def fibonacci_retracement(prices: Sequence[float]) -> FibonacciResult:
    """
    Calculate Fibonacci retracement levels between the series high and low.

    Args:
        prices: Ordered price series

    Returns:
        FibonacciResult with the level nearest to the last price
    """
    if len(prices) == 0:
        return FibonacciResult(levels={label: 0.0 for label in FIBONACCI_RATIOS})

    arr = _to_array(prices)
    high = float(arr.max())
    low = float(arr.min())
    price_range = high - low

    levels = {label: high - price_range * ratio for label, ratio in FIBONACCI_RATIOS.items()}
    levels["100%"] = low

    current_price = float(arr[-1])
    nearest: FibonacciLevel | None = None
    min_distance = math.inf
    for label, level_price in levels.items():
        distance = abs(current_price - level_price)
        if distance < min_distance:
            min_distance = distance
            relative = distance / current_price if current_price != 0 else 0.0
            nearest = FibonacciLevel(level=label, price=level_price, distance=relative)

    return FibonacciResult(
        levels=levels,
        nearest=nearest,
        trend="uptrend" if current_price > levels["50%"] else "downtrend",
    )


def level_strength(
    prices: Sequence[float], level: float, tolerance: float = LEVEL_TOLERANCE
) -> int:
    """Count prices within ``tolerance`` (relative) of ``level``."""
    band = abs(level * tolerance)
    return int((np.abs(_to_array(prices) - level) <= band).sum())


def support_resistance(prices: Sequence[float], window: int = 10) -> SupportResistanceResult:
    """
    Detect support and resistance levels from local extrema.

    A point is support when it is <= every price ``window`` bars on both
    sides, resistance when it is >=. Levels are ranked by how many prices
    touched them.

    Args:
        prices: Ordered price series
        window: Neighborhood size on each side

    Returns:
        Top 3 supports and resistances by strength; a single synthetic
        level at +/-5% of the last price when the series is shorter than
        ``2 * window + 1``
    """
    current_price = _last(prices)
    if len(prices) < window * 2 + 1:
        return SupportResistanceResult(
            supports=(PriceLevel(price=current_price * 0.95, index=0, strength=1),),
            resistances=(PriceLevel(price=current_price * 1.05, index=0, strength=1),),
            current_price=current_price,
        )

    arr = _to_array(prices)
    supports: list[PriceLevel] = []
    resistances: list[PriceLevel] = []

    for i in range(window, len(arr) - window):
        current = arr[i]
        left = arr[i - window:i]
        right = arr[i + 1:i + window + 1]

        if (left >= current).all() and (right >= current).all():
            supports.append(
                PriceLevel(price=float(current), index=i, strength=level_strength(arr, current))
            )
        if (left <= current).all() and (right <= current).all():
            resistances.append(
                PriceLevel(price=float(current), index=i, strength=level_strength(arr, current))
            )

    supports.sort(key=lambda lvl: lvl.strength, reverse=True)
    resistances.sort(key=lambda lvl: lvl.strength, reverse=True)

    return SupportResistanceResult(
        supports=tuple(supports[:3]),
        resistances=tuple(resistances[:3]),
        current_price=current_price,
    )


# =============================================================================
# Momentum, volatility, trend
# =============================================================================

def momentum(prices: Sequence[float], period: int = 14) -> MomentumResult:
    """
    Calculate price momentum ``price[i] - price[i - period]``.

    Args:
        prices: Ordered price series
        period: Lookback

    Returns:
        MomentumResult for the latest bar; neutral when fewer than
        ``period + 1`` prices
    """
    if len(prices) < period + 1:
        return MomentumResult()

    arr = _to_array(prices)
    values = arr[period:] - arr[:-period]
    current = float(values[-1])
    average = float(values.sum() / len(values))

    return MomentumResult(
        current=current,
        average=average,
        signal="strong" if current > average else "weak",
        direction="positive" if current > 0 else "negative",
    )


def classify_volatility(annualized: float) -> str:
    if annualized < VOLATILITY_LOW:
        return "low"
    if annualized > VOLATILITY_HIGH:
        return "high"
    return "medium"


def volatility_from_stats(stats: dict[str, float]) -> VolatilityResult:
    """Wrap raw volatility statistics into a VolatilityResult."""
    return VolatilityResult(
        daily=stats["daily"],
        annualized=stats["annualized"],
        level=classify_volatility(stats["annualized"]),
        percentile=stats["percentile"],
    )


def volatility(prices: Sequence[float], period: int = 20) -> VolatilityResult:
    """
    Calculate return volatility over the trailing ``period``.

    Annualized as ``daily * sqrt(252)``.

    Args:
        prices: Ordered price series
        period: Number of trailing returns

    Returns:
        VolatilityResult; zero/low when fewer than 2 prices
    """
    if len(prices) < 2:
        return VolatilityResult()
    return volatility_from_stats(volatility_stats(list(prices), period))


def detect_crossover(short_ma: Sequence[float], long_ma: Sequence[float]) -> Crossover | None:
    """
    Detect a moving-average crossover on the last two aligned points.

    Args:
        short_ma: Short-period moving average (aligned at the end)
        long_ma: Long-period moving average (aligned at the end)

    Returns:
        "golden_cross" when short moves strictly above long,
        "death_cross" when it moves strictly below, otherwise None
    """
    if len(short_ma) < 2 or len(long_ma) < 2:
        return None

    prev_short, current_short = short_ma[-2], short_ma[-1]
    prev_long, current_long = long_ma[-2], long_ma[-1]

    if prev_short <= prev_long and current_short > current_long:
        return "golden_cross"
    if prev_short >= prev_long and current_short < current_long:
        return "death_cross"
    return None


def trend_strength_from(regression: dict[str, float], corr: float) -> TrendStrength:
    """Combine regression slope and correlation into a TrendStrength."""
    slope = regression["slope"]
    return TrendStrength(
        slope=slope,
        correlation=corr,
        strength=abs(corr),
        direction="up" if slope > 0 else "down",
    )


def trend_strength(prices: Sequence[float]) -> TrendStrength:
    """Regression/correlation trend strength over ``prices`` vs. their index."""
    x = list(range(len(prices)))
    y = list(prices)
    return trend_strength_from(linear_regression(x, y), correlation(x, y))


def trend_from_smas(
    short_sma: Sequence[float],
    long_sma: Sequence[float],
    strength: TrendStrength,
) -> TrendResult:
    """Build the trend result from precomputed SMAs and regression strength."""
    if not short_sma or not long_sma:
        return TrendResult()

    current_short = short_sma[-1]
    current_long = long_sma[-1]

    if len(short_sma) >= 2 and len(long_sma) >= 2:
        short_change = current_short - short_sma[-2]
        long_change = current_long - long_sma[-2]
        trend_momentum = "accelerating" if short_change > long_change else "decelerating"
    else:
        trend_momentum = "neutral"

    confidence = abs(current_short - current_long) / current_long if current_long != 0 else 0.0

    return TrendResult(
        direction="bullish" if current_short > current_long else "bearish",
        strength=strength,
        momentum=trend_momentum,
        crossover=detect_crossover(short_sma, long_sma),
        confidence=confidence,
    )


def trend_analysis(
    prices: Sequence[float], short_period: int = 10, long_period: int = 50
) -> TrendResult:
    """
    Analyze trend direction with SMA(short) vs SMA(long).

    Args:
        prices: Ordered price series
        short_period: Fast SMA period
        long_period: Slow SMA period

    Returns:
        TrendResult; flat neutral result when fewer than ``long_period`` prices
    """
    if len(prices) < long_period:
        return TrendResult()

    return trend_from_smas(
        simple_moving_average(prices, short_period),
        simple_moving_average(prices, long_period),
        trend_strength(prices[-TREND_LOOKBACK:]),
    )


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for all indicators used by the prediction engine.

    Moving averages are memoized by indicator name, series length, period
    and a digest of the series contents, so a hit always returns the same
    values a fresh computation would.
    """

    def __init__(
        self,
        rsi_period: int = 14,
        bollinger_period: int = 20,
        bollinger_std_dev: float = 2.0,
        sr_window: int = 10,
        momentum_period: int = 14,
        volatility_period: int = 20,
        trend_short: int = 10,
        trend_long: int = 50,
        max_memo_entries: int = 256,
    ):
        self.rsi_period = rsi_period
        self.bollinger_period = bollinger_period
        self.bollinger_std_dev = bollinger_std_dev
        self.sr_window = sr_window
        self.momentum_period = momentum_period
        self.volatility_period = volatility_period
        self.trend_short = trend_short
        self.trend_long = trend_long
        self.max_memo_entries = max_memo_entries
        self._memo: dict[tuple[str, int, int, str], list[float]] = {}

    @staticmethod
    def _digest(prices: Sequence[float]) -> str:
        return hashlib.sha256(_to_array(prices).tobytes()).hexdigest()[:32]

    def _memoized(self, name: str, prices: Sequence[float], period: int, compute) -> list[float]:
        key = (name, len(prices), period, self._digest(prices))
        cached = self._memo.get(key)
        if cached is not None:
            return list(cached)

        result = compute(prices, period)
        if len(self._memo) >= self.max_memo_entries:
            self._memo.pop(next(iter(self._memo)))
        self._memo[key] = result
        return list(result)

    # ------------------------------------------------------------------
    # Memoized moving averages
    # ------------------------------------------------------------------

    def sma(self, prices: Sequence[float], period: int = 20) -> list[float]:
        return self._memoized("sma", prices, period, simple_moving_average)

    def ema(self, prices: Sequence[float], period: int = 20) -> list[float]:
        return self._memoized("ema", prices, period, exponential_moving_average)

    # ------------------------------------------------------------------
    # Indicators built on the memoized averages
    # ------------------------------------------------------------------

    def rsi(self, prices: Sequence[float]) -> RsiResult:
        return relative_strength_index(prices, self.rsi_period)

    def macd(self, prices: Sequence[float]) -> MacdResult:
        if len(prices) < MACD_SLOW:
            return MacdResult()
        return macd_from_emas(self.ema(prices, MACD_FAST), self.ema(prices, MACD_SLOW))

    def bollinger(self, prices: Sequence[float]) -> BollingerResult:
        return bollinger_from_sma(
            prices,
            self.sma(prices, self.bollinger_period),
            self.bollinger_period,
            self.bollinger_std_dev,
        )

    def fibonacci(self, prices: Sequence[float]) -> FibonacciResult:
        return fibonacci_retracement(prices)

    def support_resistance(self, prices: Sequence[float]) -> SupportResistanceResult:
        return support_resistance(prices, self.sr_window)

    def momentum(self, prices: Sequence[float]) -> MomentumResult:
        return momentum(prices, self.momentum_period)

    def volatility(self, prices: Sequence[float]) -> VolatilityResult:
        return volatility(prices, self.volatility_period)

    def moving_averages_for_trend(
        self, prices: Sequence[float]
    ) -> tuple[list[float], list[float]]:
        return self.sma(prices, self.trend_short), self.sma(prices, self.trend_long)

    def trend(self, prices: Sequence[float]) -> TrendResult:
        if len(prices) < self.trend_long:
            return TrendResult()
        short_sma, long_sma = self.moving_averages_for_trend(prices)
        return trend_from_smas(short_sma, long_sma, trend_strength(prices[-TREND_LOOKBACK:]))

    def calculate_all(self, prices: Sequence[float]) -> CompleteAnalysis:
        """
        Calculate every indicator synchronously.

        Args:
            prices: Ordered price series

        Returns:
            CompleteAnalysis for the latest bar
        """
        return CompleteAnalysis(
            trend=self.trend(prices),
            rsi=self.rsi(prices),
            macd=self.macd(prices),
            bollinger=self.bollinger(prices),
            fibonacci=self.fibonacci(prices),
            support_resistance=self.support_resistance(prices),
            momentum=self.momentum(prices),
            volatility=self.volatility(prices),
        )

    def clear(self) -> None:
        """Drop all memoized values."""
        self._memo.clear()

    @property
    def memo_size(self) -> int:
        return len(self._memo)
