#!/usr/bin/env python3
"""Predict a coin's direction from its recent price history.

Usage:
    python scripts/predict.py bitcoin
    python scripts/predict.py ethereum --timeframe 14d --days 60
"""

import argparse
import asyncio
import dataclasses
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import orjson

from app.config import get_settings
from app.services import build_dashboard
from core.errors import TrendBotError
from core.prediction.scoring import TIMEFRAME_DAYS

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a price prediction for a coin")
    parser.add_argument("coin", help="Provider coin id (e.g. bitcoin)")
    parser.add_argument(
        "--timeframe", "-t", default="7d", choices=sorted(TIMEFRAME_DAYS),
        help="Prediction horizon (default: 7d)",
    )
    parser.add_argument(
        "--days", "-d", type=int, default=30,
        help="Days of price history to analyze (default: 30)",
    )
    parser.add_argument("--analysis", action="store_true", help="Include indicator results")
    args = parser.parse_args()

    settings = get_settings().model_copy(update={"chart_days": args.days})
    dashboard = build_dashboard(settings)

    try:
        record = await dashboard.predict(args.coin, args.timeframe)
    except TrendBotError as e:
        logger.error(f"Prediction failed for {args.coin}: {e}")
        return 1
    finally:
        await dashboard.close()

    output = {
        "coin_id": record.coin_id,
        "timeframe": record.timeframe,
        "prediction": record.prediction.model_dump(),
        "processing_time_ms": round(record.processing_time_ms, 2),
    }
    if args.analysis:
        output["analysis"] = dataclasses.asdict(record.analysis)

    sys.stdout.buffer.write(orjson.dumps(output, option=orjson.OPT_INDENT_2))
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
