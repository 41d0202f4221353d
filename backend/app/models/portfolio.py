"""Portfolio holdings and price alerts persisted in the local store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return uuid.uuid4().hex


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Holding(BaseModel):
    """A coin position entered by the user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    coin_id: str = Field(alias="coinId")
    name: str = ""
    symbol: str = ""
    amount: float
    purchase_price: float = Field(alias="purchasePrice")
    date_added: str = Field(default_factory=_now_iso, alias="dateAdded")


class PriceAlert(BaseModel):
    """Notify when a coin crosses a target price."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    coin_id: str = Field(alias="coinId")
    name: str = ""
    symbol: str = ""
    type: Literal["above", "below"] = "above"
    target_price: float = Field(alias="targetPrice")
    date_added: str = Field(default_factory=_now_iso, alias="dateAdded")
    triggered: bool = False

    def is_triggered_by(self, price: float) -> bool:
        if self.type == "above":
            return price >= self.target_price
        return price <= self.target_price


class HoldingValuation(BaseModel):
    """A holding priced at the current market price."""

    holding: Holding
    current_price: float
    current_value: float
    cost: float
    pnl_percent: float
    image: str = ""


class PortfolioSummary(BaseModel):
    holdings: list[HoldingValuation] = Field(default_factory=list)
    total_value: float = 0.0
    total_cost: float = 0.0
    total_pnl_percent: float = 0.0
    holdings_count: int = 0
