"""In-memory cache for API responses.

Bounded key/value store with per-entry TTL and approximate LRU eviction:
- ``set`` on a full cache evicts the entry at the stale end of the order
- ``get`` hit re-inserts the entry at the fresh end
- expired entries are dropped when they are read

Values and expiry times live in two maps whose key sets are kept identical.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 5 * 60  # seconds


class CacheManager:
    """LRU + TTL cache.

    Parameters
    ----------
    max_size : int
        Hard cap on the number of entries.
    default_ttl : float
        TTL in seconds used when ``set`` is called without one.
    clock : Callable[[], float]
        Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._values: OrderedDict[str, Any] = OrderedDict()
        self._expires_at: dict[str, float] = {}

    # =========================================================================
    # Basic operations
    # =========================================================================

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds (``default_ttl`` when None)
        """
        if ttl is None:
            ttl = self.default_ttl

        if key in self._values:
            self._remove(key)
        elif len(self._values) >= self.max_size:
            oldest = next(iter(self._values))
            self._remove(oldest)
            logger.debug(f"Cache full, evicted {oldest}")

        self._values[key] = value
        self._expires_at[key] = self._clock() + ttl

    def get(self, key: str) -> Any | None:
        """Get a live value and mark it most recently used.

        Args:
            key: Cache key

        Returns:
            Stored value, or None if missing or expired
        """
        if key not in self._values:
            return None

        if self._clock() >= self._expires_at[key]:
            self._remove(key)
            logger.debug(f"Cache entry expired: {key}")
            return None

        self._values.move_to_end(key)
        return self._values[key]

    def delete(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key was present
        """
        if key not in self._values:
            return False
        self._remove(key)
        return True

    def clear(self) -> None:
        """Remove every entry."""
        self._values.clear()
        self._expires_at.clear()

    def _remove(self, key: str) -> None:
        del self._values[key]
        del self._expires_at[key]

    # =========================================================================
    # Introspection
    # =========================================================================

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values and self._clock() < self._expires_at[key]

    def keys(self) -> list[str]:
        """Keys from least to most recently used (expired ones included)."""
        return list(self._values)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "size": len(self._values),
            "max_size": self.max_size,
            "keys": self.keys(),
        }
