"""REST API routes."""

import logging
from typing import Any, Awaitable, Literal, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from app.models import Holding, PortfolioSummary, PriceAlert
from app.services import CoinPrediction, DashboardService
from core.errors import NetworkError, NotFoundError, TrendBotError, ValidationError
from core.models.prediction import PredictionRecord

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")

UPSTREAM_ERROR_DETAIL = "Market data is temporarily unavailable, please retry"


# Request models
class HoldingRequest(BaseModel):
    """New portfolio holding."""

    model_config = ConfigDict(populate_by_name=True)

    coin_id: str = Field("", alias="coinId")
    amount: Optional[float] = None
    purchase_price: Optional[float] = Field(None, alias="purchasePrice")
    name: str = ""
    symbol: str = ""


class AlertRequest(BaseModel):
    """New price alert."""

    model_config = ConfigDict(populate_by_name=True)

    coin_id: str = Field("", alias="coinId")
    type: Literal["above", "below"] = "above"
    target_price: Optional[float] = Field(None, alias="targetPrice")
    name: str = ""
    symbol: str = ""


def get_dashboard(request: Request) -> DashboardService:
    return request.app.state.dashboard


async def _guard(awaitable: Awaitable[T]) -> T:
    """Map application errors onto HTTP errors."""
    try:
        return await awaitable
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NetworkError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Not found")
        logger.error(f"Upstream request failed: {e}")
        raise HTTPException(status_code=502, detail=UPSTREAM_ERROR_DETAIL)
    except TrendBotError as e:
        logger.error(f"Upstream request failed: {e}")
        raise HTTPException(status_code=502, detail=UPSTREAM_ERROR_DETAIL)


def _prediction_payload(record: PredictionRecord) -> dict[str, Any]:
    return {
        "coin_id": record.coin_id,
        "timeframe": record.timeframe,
        "prediction": record.prediction,
        "analysis": record.analysis,
        "timestamp": record.timestamp,
        "processing_time_ms": record.processing_time_ms,
    }


# =============================================================================
# Market data
# =============================================================================

@router.get("/overview")
async def get_overview(dashboard: DashboardService = Depends(get_dashboard)):
    """Every overview section; failed sections are null."""
    return await dashboard.load_initial_data()


@router.get("/global")
async def get_global(dashboard: DashboardService = Depends(get_dashboard)):
    return await _guard(dashboard.market_overview())


@router.get("/trending")
async def get_trending(dashboard: DashboardService = Depends(get_dashboard)):
    return await _guard(dashboard.trending())


@router.get("/fear-greed")
async def get_fear_greed(dashboard: DashboardService = Depends(get_dashboard)):
    return await _guard(dashboard.fear_greed())


@router.get("/gainers-losers")
async def get_gainers_losers(dashboard: DashboardService = Depends(get_dashboard)):
    return await _guard(dashboard.gainers_losers())


@router.get("/trends")
async def get_trends(
    timeframe: str = Query("24h", description="Change window"),
    market: str = Query("all", description="Market category (all, defi, nft, ...)"),
    limit: int = Query(10, ge=1, le=250, description="Number of coins"),
    sort: str = Query("market_cap", description="Sort key"),
    dashboard: DashboardService = Depends(get_dashboard),
):
    """Top coins by market cap."""
    return await _guard(dashboard.trends(timeframe, market, limit, sort))


@router.get("/search")
async def search(
    q: str = Query("", description="Coin name or symbol"),
    dashboard: DashboardService = Depends(get_dashboard),
):
    return await _guard(dashboard.search(q))


@router.get("/coins/{coin_id}")
async def get_coin(coin_id: str, dashboard: DashboardService = Depends(get_dashboard)):
    return await _guard(dashboard.coin_detail(coin_id))


@router.get("/coins/{coin_id}/chart")
async def get_chart(
    coin_id: str,
    days: int = Query(7, ge=1, le=365),
    dashboard: DashboardService = Depends(get_dashboard),
):
    return await _guard(dashboard.chart(coin_id, days))


# =============================================================================
# Predictions
# =============================================================================

@router.get("/coins/{coin_id}/prediction")
async def get_prediction(
    coin_id: str,
    timeframe: Optional[str] = Query(None, description="Horizon (1h, 4h, 1d, 3d, 7d, 14d, 30d)"),
    dashboard: DashboardService = Depends(get_dashboard),
):
    """Predict a coin from its recent price chart."""
    record = await _guard(dashboard.predict(coin_id, timeframe))
    return _prediction_payload(record)


@router.get("/predictions")
async def get_market_predictions(
    timeframe: Optional[str] = Query(None),
    dashboard: DashboardService = Depends(get_dashboard),
):
    """Predictions for the top coins by market cap."""
    predictions: list[CoinPrediction] = await _guard(
        dashboard.generate_market_predictions(timeframe)
    )
    return [
        {"coin": p.coin, **_prediction_payload(p.record)}
        for p in predictions
    ]


# =============================================================================
# Portfolio
# =============================================================================

@router.get("/portfolio", response_model=PortfolioSummary)
async def get_portfolio(dashboard: DashboardService = Depends(get_dashboard)):
    return await dashboard.portfolio_summary()


@router.post("/portfolio", response_model=Holding, response_model_by_alias=True)
async def add_holding(body: HoldingRequest, dashboard: DashboardService = Depends(get_dashboard)):
    try:
        return dashboard.add_holding(
            body.coin_id, body.amount, body.purchase_price, name=body.name, symbol=body.symbol
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/portfolio/{holding_id}")
async def remove_holding(holding_id: str, dashboard: DashboardService = Depends(get_dashboard)):
    if not dashboard.remove_holding(holding_id):
        raise HTTPException(status_code=404, detail="Holding not found")
    return {"success": True, "message": "Holding removed"}


@router.get("/portfolio/export")
async def export_portfolio(dashboard: DashboardService = Depends(get_dashboard)):
    try:
        return dashboard.export_portfolio()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


# =============================================================================
# Alerts
# =============================================================================

@router.get("/alerts", response_model=list[PriceAlert], response_model_by_alias=True)
async def get_alerts(dashboard: DashboardService = Depends(get_dashboard)):
    return dashboard.alerts


@router.post("/alerts", response_model=PriceAlert, response_model_by_alias=True)
async def add_alert(body: AlertRequest, dashboard: DashboardService = Depends(get_dashboard)):
    try:
        return dashboard.add_alert(
            body.coin_id, body.target_price, body.type, name=body.name, symbol=body.symbol
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/alerts/{alert_id}")
async def remove_alert(alert_id: str, dashboard: DashboardService = Depends(get_dashboard)):
    if not dashboard.remove_alert(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"success": True, "message": "Alert removed"}


@router.post("/alerts/check", response_model=list[PriceAlert], response_model_by_alias=True)
async def check_alerts(dashboard: DashboardService = Depends(get_dashboard)):
    """Check alerts now; returns the ones that triggered."""
    return await dashboard.check_alerts()


# =============================================================================
# Maintenance
# =============================================================================

@router.get("/stats")
async def get_stats(dashboard: DashboardService = Depends(get_dashboard)):
    """Request layer and engine statistics."""
    return {
        **dashboard.api.get_stats(),
        "memoized_series": dashboard.engine.cache_size(),
        "predictions": len(dashboard.engine.predictions),
    }


@router.post("/cache/clear")
async def clear_cache(dashboard: DashboardService = Depends(get_dashboard)):
    dashboard.api.clear_cache()
    dashboard.engine.clear_cache()
    return {"success": True, "message": "Cache cleared"}
