"""Data storage layer."""

from app.storage.cache import CacheManager
from app.storage.local_store import ALERTS_KEY, PORTFOLIO_KEY, LocalStore

__all__ = [
    "CacheManager",
    "LocalStore",
    "ALERTS_KEY",
    "PORTFOLIO_KEY",
]
