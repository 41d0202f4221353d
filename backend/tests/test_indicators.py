"""Tests for technical indicators."""

import math

import pytest

from core.indicators import (
    IndicatorCalculator,
    bollinger_bands,
    correlation,
    detect_crossover,
    exponential_moving_average,
    fibonacci_retracement,
    level_strength,
    linear_regression,
    macd,
    momentum,
    relative_strength_index,
    simple_moving_average,
    support_resistance,
    trend_analysis,
    volatility,
    volatility_stats,
)
from core.indicators.calculations import calculate_sync, simple_returns, volatility_percentile
from core.models.analysis import MacdResult, MomentumResult, RsiResult, TrendResult, VolatilityResult


def zigzag(n: int, base: float = 100.0) -> list[float]:
    """Oscillating series with a mild upward drift."""
    return [base + (i % 7) * 1.5 - (i % 3) * 2.0 + i * 0.1 for i in range(n)]


class TestMovingAverages:
    """Tests for SMA and EMA."""

    def test_sma_basic(self):
        assert simple_moving_average([1, 2, 3, 4, 5], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_sma_insufficient_data(self):
        assert simple_moving_average([1, 2], 3) == []
        assert simple_moving_average([], 20) == []

    def test_sma_full_window(self):
        assert simple_moving_average([2, 4, 6], 3) == pytest.approx([4.0])

    def test_ema_seeded_with_first_price(self):
        result = exponential_moving_average([10, 20], 3)

        # multiplier = 2 / (3 + 1) = 0.5
        assert result[0] == 10.0
        assert result[1] == pytest.approx(15.0)

    def test_ema_same_length_as_input(self):
        assert len(exponential_moving_average(zigzag(30), 12)) == 30

    def test_ema_empty(self):
        assert exponential_moving_average([], 12) == []


class TestRSI:
    """Tests for RSI."""

    def test_monotonic_increase_is_overbought(self):
        result = relative_strength_index([float(i) for i in range(1, 31)], 14)

        assert result.value > 99
        assert result.signal == "overbought"
        assert result.strength > 0.9

    def test_monotonic_decrease_is_oversold(self):
        result = relative_strength_index([float(i) for i in range(30, 0, -1)], 14)

        assert result.value == pytest.approx(0.0)
        assert result.signal == "oversold"

    def test_insufficient_data(self):
        assert relative_strength_index([1.0] * 14, 14) == RsiResult(50.0, "neutral", 0.0)

    def test_flat_series(self):
        """No losses means RS is taken as 100."""
        result = relative_strength_index([5.0] * 20, 14)
        assert result.value == pytest.approx(100 - 100 / 101)


class TestMACD:
    """Tests for MACD."""

    def test_insufficient_data(self):
        assert macd(zigzag(25)) == MacdResult()

    def test_uptrend_is_bullish(self):
        prices = [100.0 + i for i in range(60)]
        result = macd(prices)

        assert result.macd > 0
        assert result.trend == "bullish"
        assert result.histogram == pytest.approx(result.macd - result.signal)

    def test_downtrend_is_bearish(self):
        prices = [200.0 - i for i in range(60)]
        assert macd(prices).trend == "bearish"


class TestBollinger:
    """Tests for Bollinger Bands."""

    def test_insufficient_data_uses_fallback_bands(self):
        result = bollinger_bands([100.0] * 5, 20)

        assert result.upper == pytest.approx(110.0)
        assert result.middle == 100.0
        assert result.lower == pytest.approx(90.0)

    def test_empty_series(self):
        result = bollinger_bands([])
        assert (result.upper, result.middle, result.lower) == (0.0, 0.0, 0.0)

    def test_flat_series_is_tight(self):
        result = bollinger_bands([50.0] * 25)

        assert result.width == 0.0
        assert result.squeeze == "tight"
        assert result.position == "middle"

    def test_breakout_above_upper(self):
        prices = [100.0, 101.0] * 10 + [130.0]
        result = bollinger_bands(prices)
        assert result.position == "above_upper"

    def test_width_formula(self):
        prices = [float(i) for i in range(1, 21)]
        result = bollinger_bands(prices)

        mean = sum(prices) / 20
        sigma = math.sqrt(sum((p - mean) ** 2 for p in prices) / 20)
        assert result.middle == pytest.approx(mean)
        assert result.width == pytest.approx(4 * sigma / mean)


class TestFibonacci:
    """Tests for Fibonacci retracement."""

    def test_levels(self):
        result = fibonacci_retracement([100.0, 200.0, 150.0])

        assert result.levels["0%"] == 200.0
        assert result.levels["50%"] == 150.0
        assert result.levels["61.8%"] == pytest.approx(138.2)
        assert result.levels["100%"] == 100.0
        assert result.nearest.level == "50%"
        assert result.nearest.distance == 0.0

    def test_trend(self):
        assert fibonacci_retracement([100.0, 200.0, 190.0]).trend == "uptrend"
        assert fibonacci_retracement([100.0, 200.0, 110.0]).trend == "downtrend"

    def test_empty(self):
        result = fibonacci_retracement([])

        assert set(result.levels.values()) == {0.0}
        assert result.nearest is None
        assert result.trend == "neutral"


class TestSupportResistance:
    """Tests for support/resistance detection."""

    def test_insufficient_data_synthetic_levels(self):
        result = support_resistance([100.0] * 10, window=10)

        assert result.nearest_support == pytest.approx(95.0)
        assert result.nearest_resistance == pytest.approx(105.0)

    def test_detects_extrema(self):
        prices = [110.0 - i for i in range(10)] + [100.0] + [101.0 + i for i in range(10)]
        prices += [109.0 - i for i in range(10)]
        result = support_resistance(prices, window=10)

        assert result.supports[0].price == 100.0
        assert result.supports[0].index == 10
        assert result.resistances[0].price == 110.0

    def test_at_most_three_levels(self):
        result = support_resistance([100.0] * 40, window=3)

        assert len(result.supports) == 3
        assert len(result.resistances) == 3
        assert all(level.strength == 40 for level in result.supports)

    def test_level_strength(self):
        assert level_strength([100.0, 101.5, 103.0, 98.0], 100.0) == 3


class TestMomentumVolatility:
    """Tests for momentum and volatility."""

    def test_momentum_insufficient(self):
        assert momentum([1.0] * 14, 14) == MomentumResult()

    def test_momentum_accelerating_uptrend(self):
        prices = [float(i * i) for i in range(30)]
        result = momentum(prices, 14)

        assert result.current == prices[-1] - prices[-15]
        assert result.direction == "positive"
        assert result.signal == "strong"

    def test_volatility_insufficient(self):
        assert volatility([100.0]) == VolatilityResult()
        assert volatility([]) == VolatilityResult()

    def test_volatility_flat_series(self):
        result = volatility([100.0] * 30)

        assert result.daily == 0.0
        assert result.level == "low"

    def test_volatility_annualized(self):
        result = volatility(zigzag(60))
        assert result.annualized == pytest.approx(result.daily * math.sqrt(252))

    def test_volatility_levels(self):
        calm = [100 * (1 + 0.001 * (-1) ** i) for i in range(40)]
        wild = [100 * (1 + 0.1 * (-1) ** i) for i in range(40)]

        assert volatility(calm).level == "low"
        assert volatility(wild).level == "high"

    def test_percentile_in_unit_range(self):
        prices = zigzag(80)
        stats = volatility_stats(prices, 20)
        assert 0.0 <= stats["percentile"] <= 1.0

    def test_percentile_defaults_to_one_above_history(self):
        returns = simple_returns([100.0] * 30)
        assert volatility_percentile(1.0, returns) == 1.0


class TestStatistics:
    """Tests for correlation and regression kernels."""

    def test_perfect_correlation(self):
        assert correlation([0, 1, 2, 3], [1, 3, 5, 7]) == pytest.approx(1.0)
        assert correlation([0, 1, 2, 3], [7, 5, 3, 1]) == pytest.approx(-1.0)

    def test_undefined_correlation(self):
        assert correlation([], []) == 0.0
        assert correlation([0, 1, 2], [5, 5, 5]) == 0.0

    def test_regression(self):
        result = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])

        assert result["slope"] == pytest.approx(2.0)
        assert result["intercept"] == pytest.approx(1.0)

    def test_calculate_sync_unknown_kind(self):
        with pytest.raises(ValueError):
            calculate_sync("fourier", [1.0])


class TestTrend:
    """Tests for trend analysis and crossover detection."""

    def test_golden_cross(self):
        assert detect_crossover([1, 1, 2], [2, 2, 1]) == "golden_cross"

    def test_death_cross(self):
        assert detect_crossover([2, 2, 1], [1, 1, 2]) == "death_cross"

    def test_tie_to_tie_is_not_a_cross(self):
        assert detect_crossover([1, 1], [1, 1]) is None

    def test_tie_then_above_is_golden(self):
        assert detect_crossover([1, 2], [1, 1]) == "golden_cross"

    def test_already_above_is_not_a_cross(self):
        assert detect_crossover([3, 4], [1, 2]) is None

    def test_short_input(self):
        assert detect_crossover([1], [2]) is None

    def test_insufficient_data(self):
        assert trend_analysis(zigzag(49)) == TrendResult()

    def test_uptrend(self):
        result = trend_analysis([100.0 + i for i in range(60)])

        assert result.direction == "bullish"
        assert result.strength.direction == "up"
        assert result.strength.strength == pytest.approx(1.0)
        assert result.confidence > 0

    def test_downtrend(self):
        result = trend_analysis([200.0 - i for i in range(60)])

        assert result.direction == "bearish"
        assert result.strength.slope == pytest.approx(-1.0)


class TestDegenerateInputs:
    """Every indicator is total over empty and short input."""

    @pytest.mark.parametrize("prices", [[], [42.0], [1.0, 2.0, 3.0]])
    def test_calculate_all_never_raises(self, prices):
        analysis = IndicatorCalculator().calculate_all(prices)

        assert analysis.rsi.signal == "neutral"
        assert analysis.macd == MacdResult()
        assert analysis.trend == TrendResult()
        assert analysis.momentum == MomentumResult()


class TestIndicatorCalculator:
    """Tests for the memoizing calculator."""

    def test_memoized_results_match_fresh(self):
        calc = IndicatorCalculator()
        prices = zigzag(120)

        first = calc.calculate_all(prices)
        assert calc.memo_size > 0
        second = calc.calculate_all(prices)

        assert first == second
        assert first == IndicatorCalculator().calculate_all(prices)

    def test_same_length_different_contents(self):
        """Series of equal length never share a memo entry."""
        calc = IndicatorCalculator()

        a = calc.sma([1.0, 2.0, 3.0], 3)
        b = calc.sma([4.0, 5.0, 6.0], 3)

        assert a == pytest.approx([2.0])
        assert b == pytest.approx([5.0])

    def test_memo_is_bounded(self):
        calc = IndicatorCalculator(max_memo_entries=2)
        for n in range(5):
            calc.sma([float(n)] * 5, 2)
        assert calc.memo_size == 2

    def test_clear(self):
        calc = IndicatorCalculator()
        calc.sma([1.0, 2.0], 2)
        calc.clear()
        assert calc.memo_size == 0

    def test_matches_module_functions(self):
        prices = zigzag(80)
        calc = IndicatorCalculator()

        assert calc.macd(prices) == macd(prices)
        assert calc.bollinger(prices) == bollinger_bands(prices)
        assert calc.trend(prices) == trend_analysis(prices)
