"""Prediction engine.

Runs every indicator over a price series (concurrently where the work is
offloadable), aggregates the results into a ``CompleteAnalysis`` and
derives a ``Prediction`` from it.

The engine is total over any series length: each indicator has a
degenerate result for short input, so no input raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from core.indicators.calculations import calculate_sync
from core.indicators.indicators import (
    TREND_LOOKBACK,
    IndicatorCalculator,
    trend_from_smas,
    trend_strength_from,
    volatility_from_stats,
)
from core.models.analysis import CompleteAnalysis, TrendResult, VolatilityResult
from core.models.prediction import Prediction, PredictionRecord
from core.models.series import PriceSeries, as_prices
from core.prediction.offload import CalculationOffloader
from core.prediction.scoring import calculate_prediction

logger = logging.getLogger(__name__)


class PredictionEngine:
    """Aggregate indicators into directional predictions.

    The last prediction per coin is kept in memory and overwritten by the
    next one for the same coin.
    """

    def __init__(
        self,
        calculator: IndicatorCalculator | None = None,
        offloader: CalculationOffloader | None = None,
    ):
        self.calculator = calculator or IndicatorCalculator()
        self.offloader = offloader or CalculationOffloader()
        self._predictions: dict[str, PredictionRecord] = {}

    # ------------------------------------------------------------------
    # Offloadable analyses
    # ------------------------------------------------------------------

    async def trend_analysis(self, prices: Sequence[float]) -> TrendResult:
        calc = self.calculator
        if len(prices) < calc.trend_long:
            return TrendResult()

        short_sma, long_sma = calc.moving_averages_for_trend(prices)

        recent = list(prices[-TREND_LOOKBACK:])
        x = list(range(len(recent)))
        regression, corr = await asyncio.gather(
            self.offloader.calculate_or_fallback("regression", x, recent),
            self.offloader.calculate_or_fallback("correlation", x, recent),
        )

        return trend_from_smas(short_sma, long_sma, trend_strength_from(regression, corr))

    async def volatility_analysis(self, prices: Sequence[float]) -> VolatilityResult:
        if len(prices) < 2:
            return VolatilityResult()

        stats = await self.offloader.calculate_or_fallback(
            "volatility", list(prices), self.calculator.volatility_period
        )
        return volatility_from_stats(stats)

    # ------------------------------------------------------------------
    # Analysis and prediction
    # ------------------------------------------------------------------

    async def perform_complete_analysis(
        self, series: PriceSeries | Sequence[float]
    ) -> CompleteAnalysis:
        """
        Run every indicator over ``series``.

        Args:
            series: Price series or plain sequence of prices

        Returns:
            CompleteAnalysis for the latest price
        """
        prices = as_prices(series)
        calc = self.calculator

        trend, volatility = await asyncio.gather(
            self.trend_analysis(prices),
            self.volatility_analysis(prices),
        )

        return CompleteAnalysis(
            trend=trend,
            rsi=calc.rsi(prices),
            macd=calc.macd(prices),
            bollinger=calc.bollinger(prices),
            fibonacci=calc.fibonacci(prices),
            support_resistance=calc.support_resistance(prices),
            momentum=calc.momentum(prices),
            volatility=volatility,
        )

    def analyze_sync(self, series: PriceSeries | Sequence[float]) -> CompleteAnalysis:
        """Run every indicator in-line without touching the worker pool."""
        return self.calculator.calculate_all(as_prices(series))

    async def generate_prediction(
        self,
        coin_id: str,
        series: PriceSeries | Sequence[float],
        timeframe: str = "7d",
    ) -> PredictionRecord:
        """
        Analyze ``series`` and derive a prediction for ``coin_id``.

        Args:
            coin_id: Coin identifier used as the bookkeeping key
            series: Chronological prices for the coin
            timeframe: Symbolic horizon (``1h``, ``4h``, ``1d``, ``3d``,
                ``7d``, ``14d``, ``30d``)

        Returns:
            PredictionRecord holding the prediction and its analysis
        """
        started = time.perf_counter()
        prices = as_prices(series)

        analysis = await self.perform_complete_analysis(prices)
        prediction = self.calculate_prediction(prices, analysis, timeframe)

        record = PredictionRecord(
            coin_id=coin_id,
            timeframe=timeframe,
            prediction=prediction,
            analysis=analysis,
            timestamp=time.time(),
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )
        self._predictions[coin_id] = record
        logger.debug(
            f"Prediction for {coin_id} ({timeframe}): {prediction.direction} "
            f"confidence={prediction.confidence:.2f} in {record.processing_time_ms:.1f}ms"
        )
        return record

    @staticmethod
    def calculate_prediction(
        prices: Sequence[float], analysis: CompleteAnalysis, timeframe: str
    ) -> Prediction:
        current_price = float(prices[-1]) if len(prices) else 0.0
        return calculate_prediction(current_price, analysis, timeframe)

    def calculate_sync(self, kind: str, *args):
        """In-line version of an offloadable calculation."""
        return calculate_sync(kind, *args)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def get_prediction(self, coin_id: str) -> PredictionRecord | None:
        return self._predictions.get(coin_id)

    @property
    def predictions(self) -> dict[str, PredictionRecord]:
        return dict(self._predictions)

    def clear_cache(self) -> None:
        """Drop memoized moving averages."""
        self.calculator.clear()

    def cache_size(self) -> int:
        return self.calculator.memo_size

    def close(self) -> None:
        """Release the worker pool and forget stored predictions."""
        self.clear_cache()
        self._predictions.clear()
        self.offloader.shutdown()
