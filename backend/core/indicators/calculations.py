"""Statistical kernels shared by the in-line and offloaded code paths.

Every function here is a plain module-level function over plain Python
sequences so it can be shipped to a worker unchanged. The worker and the
synchronous fallback call the exact same function, which keeps the two
paths numerically identical.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

TRADING_DAYS_PER_YEAR = 252
PERCENTILE_WINDOW = 20


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation of two equal-length sequences (0.0 when undefined)."""
    n = len(x)
    if n == 0:
        return 0.0

    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)

    sum_x = xs.sum()
    sum_y = ys.sum()
    sum_xy = (xs * ys).sum()
    sum_xx = (xs * xs).sum()
    sum_yy = (ys * ys).sum()

    numerator = n * sum_xy - sum_x * sum_y
    radicand = (n * sum_xx - sum_x * sum_x) * (n * sum_yy - sum_y * sum_y)
    if radicand <= 0:
        return 0.0
    return float(numerator / math.sqrt(radicand))


def linear_regression(x: Sequence[float], y: Sequence[float]) -> dict[str, float]:
    """Least-squares fit ``y = slope * x + intercept``."""
    n = len(x)
    if n == 0:
        return {"slope": 0.0, "intercept": 0.0}

    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)

    sum_x = xs.sum()
    sum_y = ys.sum()
    sum_xy = (xs * ys).sum()
    sum_xx = (xs * xs).sum()

    denominator = n * sum_xx - sum_x * sum_x
    slope = 0.0 if denominator == 0 else float((n * sum_xy - sum_x * sum_y) / denominator)
    intercept = float((sum_y - slope * sum_x) / n)
    return {"slope": slope, "intercept": intercept}


def simple_returns(prices: Sequence[float]) -> list[float]:
    """Period-over-period simple returns; a zero base price yields 0.0."""
    arr = np.asarray(prices, dtype=np.float64)
    if len(arr) < 2:
        return []
    prev = arr[:-1]
    diff = arr[1:] - prev
    safe_prev = np.where(prev == 0, 1.0, prev)
    returns = np.where(prev == 0, 0.0, diff / safe_prev)
    return [float(r) for r in returns]


def _population_std(values: np.ndarray) -> float:
    if len(values) == 0:
        return 0.0
    mean = values.sum() / len(values)
    variance = ((values - mean) ** 2).sum() / len(values)
    return float(math.sqrt(variance))


def volatility_percentile(current: float, returns: Sequence[float]) -> float:
    """Rank of ``current`` among annualized rolling-window volatilities.

    Windows are ``PERCENTILE_WINDOW`` returns wide. Returns 1.0 when no
    historical window reaches ``current`` (including when there are none).
    """
    arr = np.asarray(returns, dtype=np.float64)
    annualize = math.sqrt(TRADING_DAYS_PER_YEAR)

    history = sorted(
        _population_std(arr[i - PERCENTILE_WINDOW:i]) * annualize
        for i in range(PERCENTILE_WINDOW, len(arr))
    )

    for rank, vol in enumerate(history):
        if vol >= current:
            return rank / len(history)
    return 1.0


def volatility_stats(prices: Sequence[float], period: int = 20) -> dict[str, float]:
    """Daily and annualized volatility of the trailing ``period`` returns."""
    returns = simple_returns(prices)
    recent = np.asarray(returns[-period:], dtype=np.float64)

    daily = _population_std(recent)
    annualized = daily * math.sqrt(TRADING_DAYS_PER_YEAR)

    return {
        "daily": daily,
        "annualized": annualized,
        "percentile": volatility_percentile(annualized, returns),
    }


CALCULATIONS = {
    "correlation": correlation,
    "regression": linear_regression,
    "volatility": volatility_stats,
}


def calculate_sync(kind: str, *args):
    """Run a named calculation in-line."""
    try:
        func = CALCULATIONS[kind]
    except KeyError:
        raise ValueError(f"Unknown calculation type: {kind}") from None
    return func(*args)
