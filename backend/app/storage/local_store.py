"""Local key-value store for portfolio holdings and price alerts.

A single JSON document on disk; each key maps to a JSON array of records
serialized with their camelCase aliases.
"""

import logging
import os
from pathlib import Path
from typing import Any

import orjson

from app.models.portfolio import Holding, PriceAlert

logger = logging.getLogger(__name__)

PORTFOLIO_KEY = "trendbot_portfolio"
ALERTS_KEY = "trendbot_alerts"


class LocalStore:
    """JSON-file backed key-value store."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            logger.info(f"No local store at {self.path}, starting empty")
            self._data = {}
            return self._data

        raw = self.path.read_bytes()
        try:
            data = orjson.loads(raw) if raw.strip() else {}
        except orjson.JSONDecodeError as e:
            logger.error(f"Local store {self.path} is corrupt, starting empty: {e}")
            data = {}
        self._data = data if isinstance(data, dict) else {}
        return self._data

    def _flush(self) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_bytes(orjson.dumps(self._load(), option=orjson.OPT_INDENT_2))
        os.replace(tmp, self.path)

    # =========================================================================
    # Raw key access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._load()[key] = value
        self._flush()

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        self._flush()
        return True

    # =========================================================================
    # Typed records
    # =========================================================================

    def load_holdings(self) -> list[Holding]:
        return [Holding.model_validate(item) for item in self.get(PORTFOLIO_KEY, [])]

    def save_holdings(self, holdings: list[Holding]) -> None:
        self.set(PORTFOLIO_KEY, [h.model_dump(by_alias=True) for h in holdings])

    def load_alerts(self) -> list[PriceAlert]:
        return [PriceAlert.model_validate(item) for item in self.get(ALERTS_KEY, [])]

    def save_alerts(self, alerts: list[PriceAlert]) -> None:
        self.set(ALERTS_KEY, [a.model_dump(by_alias=True) for a in alerts])
