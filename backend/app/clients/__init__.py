"""Market data clients."""

from app.clients.coingecko_rest import MarketDataClient, ProviderRequest, RateLimiter
from app.clients.normalizers import Err, Ok, ResourceKind, normalize_response, parse_payload

__all__ = [
    "MarketDataClient",
    "ProviderRequest",
    "RateLimiter",
    "Err",
    "Ok",
    "ResourceKind",
    "normalize_response",
    "parse_payload",
]
