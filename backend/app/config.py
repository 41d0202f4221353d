"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Market data provider
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    fear_greed_url: str = "https://api.alternative.me/fng/"
    user_agent: str = "TrendBot/2.0"
    calls_per_minute: int = 30  # Public tier is rate limited

    # Request layer
    request_timeout: float = 15.0  # seconds per attempt
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds; doubles on each retry

    # Cache
    cache_max_size: int = 100
    cache_default_ttl: float = 300.0  # 5 minutes

    # Prediction engine
    calculation_timeout: float = 5.0
    calculation_workers: int = 2
    default_timeframe: str = "7d"
    chart_days: int = 30
    prediction_top_n: int = 5

    # Background tasks (seconds)
    refresh_interval: float = 300.0
    alert_check_interval: float = 60.0

    # Local key-value store for portfolio and alerts
    store_path: str = ".trendbot_store.json"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
