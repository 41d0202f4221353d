"""Business services."""

from app.services.api_manager import APIManager, BatchResult, RequestDescriptor
from app.services.dashboard import CoinPrediction, DashboardService, build_dashboard
from app.services.scheduler import PeriodicTask

__all__ = [
    "APIManager",
    "BatchResult",
    "RequestDescriptor",
    "CoinPrediction",
    "DashboardService",
    "build_dashboard",
    "PeriodicTask",
]
