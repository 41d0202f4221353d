"""Error taxonomy shared by the request layer, engine and services."""

from __future__ import annotations


class TrendBotError(Exception):
    """Base class for all application errors."""


class NetworkError(TrendBotError):
    """Transport failure or non-2xx HTTP status. Retryable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(TrendBotError):
    """Request aborted because its deadline elapsed. Never retried."""


class ParseError(TrendBotError):
    """Payload could not be decoded or normalized. Never retried."""


class CalculationTimeout(TrendBotError):
    """Offloaded calculation did not reply in time."""


class ValidationError(TrendBotError):
    """Missing or invalid user input."""


class NotFoundError(TrendBotError):
    """Requested resource has no data."""
