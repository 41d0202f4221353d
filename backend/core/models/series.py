"""Price series model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(slots=True, frozen=True)
class PriceSeries:
    """Chronologically ordered prices with optional paired timestamps.

    Timestamps are Unix milliseconds, as returned by the market data
    provider. When present there is exactly one per price.
    """

    prices: tuple[float, ...]
    timestamps: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if self.timestamps and len(self.timestamps) != len(self.prices):
            raise ValueError(
                f"timestamps ({len(self.timestamps)}) and prices "
                f"({len(self.prices)}) must have the same length"
            )

    @classmethod
    def from_prices(cls, prices: Iterable[float]) -> "PriceSeries":
        return cls(prices=tuple(float(p) for p in prices))

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> "PriceSeries":
        """Build from ``(timestamp, price)`` pairs."""
        pairs = list(points)
        return cls(
            prices=tuple(float(p) for _, p in pairs),
            timestamps=tuple(float(t) for t, _ in pairs),
        )

    def __len__(self) -> int:
        return len(self.prices)

    @property
    def last(self) -> float:
        """Most recent price, or 0.0 for an empty series."""
        return self.prices[-1] if self.prices else 0.0


def as_prices(series: "PriceSeries | Sequence[float]") -> tuple[float, ...]:
    if isinstance(series, PriceSeries):
        return series.prices
    return tuple(float(p) for p in series)
