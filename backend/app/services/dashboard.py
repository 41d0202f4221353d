"""Dashboard orchestrator.

Owns the request layer, the prediction engine and the local store, and
exposes the dashboard operations: market data views, predictions,
portfolio holdings and price alerts. Background refresh and alert checks
run as ``PeriodicTask`` objects started and stopped explicitly.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from app.clients.coingecko_rest import MarketDataClient
from app.config import Settings
from app.models.market import (
    ChartSeries,
    CoinDetail,
    GainersLosers,
    GlobalSnapshot,
    MarketRecord,
    SearchRecord,
    TrendingRecord,
)
from app.models.portfolio import Holding, HoldingValuation, PortfolioSummary, PriceAlert
from app.services.api_manager import APIManager, RequestDescriptor
from app.services.scheduler import PeriodicTask
from app.storage.cache import CacheManager
from app.storage.local_store import LocalStore
from core.errors import NotFoundError, TrendBotError, ValidationError
from core.indicators.indicators import IndicatorCalculator
from core.models.prediction import PredictionRecord
from core.models.series import PriceSeries
from core.prediction.engine import PredictionEngine
from core.prediction.offload import CalculationOffloader

logger = logging.getLogger(__name__)

# Cache TTLs (seconds)
TRENDS_TTL = 2 * 60
COIN_TTL = 5 * 60
CHART_TTL = 5 * 60
TOP_COINS_TTL = 5 * 60
ALERT_COIN_TTL = 60
GLOBAL_TTL = 5 * 60
GAINERS_LOSERS_TTL = 5 * 60
TRENDING_TTL = 10 * 60
SEARCH_TTL = 10 * 60
FEAR_GREED_TTL = 60 * 60

MIN_SEARCH_LENGTH = 2
TOP_COINS_LIMIT = 10

OVERVIEW_REQUESTS = (
    RequestDescriptor("/api/global", cache_key="global_data", cache_ttl=GLOBAL_TTL),
    RequestDescriptor("/api/trending", cache_key="trending_cryptos", cache_ttl=TRENDING_TTL),
    RequestDescriptor("/api/fear-greed", cache_key="fear_greed_index", cache_ttl=FEAR_GREED_TTL),
    RequestDescriptor(
        "/api/gainers-losers", cache_key="gainers_losers", cache_ttl=GAINERS_LOSERS_TTL
    ),
)


@dataclass(slots=True, frozen=True)
class CoinPrediction:
    coin: MarketRecord
    record: PredictionRecord


class DashboardService:
    """Top-level orchestrator for the dashboard.

    Parameters
    ----------
    api : APIManager
        Request layer used for every market data lookup.
    engine : PredictionEngine
        Indicator and prediction engine.
    store : LocalStore
        Persistence for holdings and alerts.
    """

    def __init__(
        self,
        api: APIManager,
        engine: PredictionEngine,
        store: LocalStore,
        default_timeframe: str = "7d",
        chart_days: int = 30,
        prediction_top_n: int = 5,
        refresh_interval: float = 300.0,
        alert_check_interval: float = 60.0,
    ):
        self.api = api
        self.engine = engine
        self.store = store
        self.default_timeframe = default_timeframe
        self.chart_days = chart_days
        self.prediction_top_n = prediction_top_n

        self.portfolio: list[Holding] = store.load_holdings()
        self.alerts: list[PriceAlert] = store.load_alerts()
        self.market_predictions: list[CoinPrediction] = []
        self.last_updated: datetime | None = None

        self.refresh_task = PeriodicTask("dashboard-refresh", refresh_interval, self.load_initial_data)
        self.alert_task = PeriodicTask("alert-check", alert_check_interval, self.check_alerts)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start auto-refresh and alert checks."""
        self.refresh_task.start()
        self.alert_task.start()

    async def stop(self) -> None:
        await self.refresh_task.stop()
        await self.alert_task.stop()

    async def close(self) -> None:
        await self.stop()
        await self.api.close()
        self.engine.close()

    # =========================================================================
    # Market data
    # =========================================================================

    async def load_initial_data(self) -> dict[str, Any]:
        """
        Fetch every overview section concurrently.

        Failed sections are logged and come back as None.
        """
        batch, trends = await asyncio.gather(
            self.api.batch_request(OVERVIEW_REQUESTS),
            self.trends(),
            return_exceptions=True,
        )

        sections: dict[str, Any] = {
            "global": None,
            "trending": None,
            "fear_greed": None,
            "gainers_losers": None,
            "trends": None,
        }

        if isinstance(batch, BaseException):
            logger.error(f"Error loading market overview: {batch}")
        else:
            for name, result in zip(("global", "trending", "fear_greed", "gainers_losers"), batch):
                if result.success:
                    sections[name] = result.data.data
                else:
                    logger.error(f"Error loading {result.target}: {result.error}")

        if isinstance(trends, BaseException):
            logger.error(f"Error analyzing trends: {trends}")
        else:
            sections["trends"] = trends

        self.last_updated = datetime.now(timezone.utc)
        return sections

    async def market_overview(self) -> GlobalSnapshot:
        response = await self.api.make_request(OVERVIEW_REQUESTS[0])
        return response.data

    async def trending(self) -> list[TrendingRecord]:
        response = await self.api.make_request(OVERVIEW_REQUESTS[1])
        return response.data

    async def fear_greed(self) -> Any:
        response = await self.api.make_request(OVERVIEW_REQUESTS[2])
        return response.data

    async def gainers_losers(self) -> GainersLosers:
        response = await self.api.make_request(OVERVIEW_REQUESTS[3])
        return response.data

    async def trends(
        self,
        timeframe: str = "24h",
        market: str = "all",
        limit: int = 10,
        sort: str = "market_cap",
    ) -> list[MarketRecord]:
        response = await self.api.make_request(
            f"/api/trends?timeframe={timeframe}&market={market}&limit={limit}&sort={sort}",
            cache_key=f"trends_{timeframe}_{market}_{limit}_{sort}",
            cache_ttl=TRENDS_TTL,
        )
        return response.data

    async def search(self, query: str) -> list[SearchRecord]:
        """Search coins; queries shorter than two characters match nothing."""
        query = query.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []

        response = await self.api.make_request(
            f"/api/search?q={quote(query)}",
            cache_key=f"search_{query}",
            cache_ttl=SEARCH_TTL,
        )
        return response.data

    async def coin_detail(self, coin_id: str, cache_ttl: float = COIN_TTL) -> CoinDetail:
        response = await self.api.make_request(
            f"/api/coin/{coin_id}",
            cache_key=f"coin_{coin_id}",
            cache_ttl=cache_ttl,
        )
        return response.data

    async def chart(self, coin_id: str, days: int = 7) -> ChartSeries:
        response = await self.api.make_request(
            f"/api/chart/{coin_id}?days={days}",
            cache_key=f"chart_{coin_id}_{days}",
            cache_ttl=CHART_TTL,
        )
        return response.data

    # =========================================================================
    # Predictions
    # =========================================================================

    async def predict(self, coin_id: str, timeframe: str | None = None) -> PredictionRecord:
        """
        Predict one coin from its recent price chart.

        Args:
            coin_id: Provider coin id (e.g. ``bitcoin``)
            timeframe: Horizon such as ``7d`` (service default when None)

        Returns:
            PredictionRecord with prediction and analysis

        Raises:
            NotFoundError: The chart has no price points
        """
        chart = await self.chart(coin_id, days=self.chart_days)
        if not chart.prices:
            raise NotFoundError(f"No price history for {coin_id}")
        series = PriceSeries.from_points((p.timestamp, p.price) for p in chart.prices)
        return await self.engine.generate_prediction(
            coin_id, series, timeframe or self.default_timeframe
        )

    async def generate_market_predictions(
        self, timeframe: str | None = None
    ) -> list[CoinPrediction]:
        """Predict the top coins by market cap; failing coins are skipped."""
        response = await self.api.make_request(
            f"/api/trends?timeframe=24h&market=all&limit={TOP_COINS_LIMIT}&sort=market_cap",
            cache_key=f"top_{TOP_COINS_LIMIT}_cryptos",
            cache_ttl=TOP_COINS_TTL,
        )

        predictions = []
        for coin in response.data[: self.prediction_top_n]:
            try:
                record = await self.predict(coin.id, timeframe)
            except TrendBotError as e:
                logger.error(f"Error generating prediction for {coin.id}: {e}")
                continue
            predictions.append(CoinPrediction(coin=coin, record=record))

        self.market_predictions = predictions
        logger.info(f"Generated {len(predictions)} market predictions")
        return predictions

    # =========================================================================
    # Portfolio
    # =========================================================================

    def add_holding(
        self,
        coin_id: str,
        amount: float | None,
        purchase_price: float | None,
        name: str = "",
        symbol: str = "",
    ) -> Holding:
        if not coin_id or amount is None or purchase_price is None:
            raise ValidationError("Please fill in all fields")
        if amount <= 0 or purchase_price <= 0:
            raise ValidationError("Amount and purchase price must be positive")

        holding = Holding(
            coin_id=coin_id,
            name=name or coin_id,
            symbol=symbol.upper(),
            amount=amount,
            purchase_price=purchase_price,
        )
        self.portfolio.append(holding)
        self.store.save_holdings(self.portfolio)
        logger.info(f"Holding added: {amount} {coin_id} @ {purchase_price}")
        return holding

    def remove_holding(self, holding_id: str) -> bool:
        remaining = [h for h in self.portfolio if h.id != holding_id]
        if len(remaining) == len(self.portfolio):
            return False
        self.portfolio = remaining
        self.store.save_holdings(self.portfolio)
        return True

    async def portfolio_summary(self) -> PortfolioSummary:
        """Value every holding at the current price.

        Holdings whose price cannot be fetched are left out of the totals.
        """
        valuations = []
        total_value = 0.0
        total_cost = 0.0

        for holding in self.portfolio:
            try:
                coin = await self.coin_detail(holding.coin_id)
            except TrendBotError as e:
                logger.error(f"Error fetching price for {holding.coin_id}: {e}")
                continue

            current_value = holding.amount * coin.current_price
            cost = holding.amount * holding.purchase_price
            total_value += current_value
            total_cost += cost
            valuations.append(
                HoldingValuation(
                    holding=holding,
                    current_price=coin.current_price,
                    current_value=current_value,
                    cost=cost,
                    pnl_percent=(coin.current_price - holding.purchase_price)
                    / holding.purchase_price
                    * 100,
                    image=coin.image,
                )
            )

        return PortfolioSummary(
            holdings=valuations,
            total_value=total_value,
            total_cost=total_cost,
            total_pnl_percent=(total_value - total_cost) / total_cost * 100 if total_cost > 0 else 0.0,
            holdings_count=len(self.portfolio),
        )

    def export_portfolio(self) -> dict[str, Any]:
        if not self.portfolio:
            raise ValidationError("No portfolio data to export")
        return {
            "portfolio": [h.model_dump(by_alias=True) for h in self.portfolio],
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "totalHoldings": len(self.portfolio),
        }

    # =========================================================================
    # Alerts
    # =========================================================================

    def add_alert(
        self,
        coin_id: str,
        target_price: float | None,
        alert_type: str = "above",
        name: str = "",
        symbol: str = "",
    ) -> PriceAlert:
        if not coin_id or target_price is None:
            raise ValidationError("Please fill in all fields")
        if alert_type not in ("above", "below"):
            raise ValidationError(f"Unknown alert type: {alert_type}")

        alert = PriceAlert(
            coin_id=coin_id,
            name=name or coin_id,
            symbol=symbol.upper(),
            type=alert_type,
            target_price=target_price,
        )
        self.alerts.append(alert)
        self.store.save_alerts(self.alerts)
        logger.info(f"Alert added: {coin_id} {alert_type} {target_price}")
        return alert

    def remove_alert(self, alert_id: str) -> bool:
        remaining = [a for a in self.alerts if a.id != alert_id]
        if len(remaining) == len(self.alerts):
            return False
        self.alerts = remaining
        self.store.save_alerts(self.alerts)
        return True

    async def check_alerts(self) -> list[PriceAlert]:
        """
        Check every untriggered alert against the current price.

        Returns:
            Alerts that triggered during this check
        """
        triggered = []
        for alert in self.alerts:
            if alert.triggered:
                continue

            try:
                coin = await self.coin_detail(alert.coin_id, cache_ttl=ALERT_COIN_TTL)
            except TrendBotError as e:
                logger.error(f"Error checking alert for {alert.coin_id}: {e}")
                continue

            if alert.is_triggered_by(coin.current_price):
                alert.triggered = True
                triggered.append(alert)
                logger.info(
                    f"Alert: {alert.name} is {alert.type} ${alert.target_price} "
                    f"(current price ${coin.current_price})"
                )

        if triggered:
            self.store.save_alerts(self.alerts)
        return triggered


def build_dashboard(settings: Settings) -> DashboardService:
    """Wire a DashboardService and its collaborators from settings."""
    client = MarketDataClient(
        base_url=settings.coingecko_base_url,
        fear_greed_url=settings.fear_greed_url,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
        calls_per_minute=settings.calls_per_minute,
    )
    api = APIManager(
        client=client,
        cache=CacheManager(
            max_size=settings.cache_max_size,
            default_ttl=settings.cache_default_ttl,
        ),
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay,
        timeout=settings.request_timeout,
    )
    engine = PredictionEngine(
        calculator=IndicatorCalculator(),
        offloader=CalculationOffloader.with_threads(
            settings.calculation_workers, timeout=settings.calculation_timeout
        ),
    )
    return DashboardService(
        api=api,
        engine=engine,
        store=LocalStore(settings.store_path),
        default_timeframe=settings.default_timeframe,
        chart_days=settings.chart_days,
        prediction_top_n=settings.prediction_top_n,
        refresh_interval=settings.refresh_interval,
        alert_check_interval=settings.alert_check_interval,
    )
