"""
CandleForge – Candle Mapper
=============================
Candle (dominio) ↔ MarketKlineModel (ORM). Los timestamps se guardan como
DATETIME en UTC sin zona.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from candleforge.domain.entities.candle import Candle


class CandleMapper:
    def to_model(self, candle: Candle) -> Dict[str, Any]:
        open_time = datetime.fromtimestamp(candle.bucket_start, tz=timezone.utc)
        return {
            "trading_pair": candle.instrument,
            "interval_seconds": candle.interval,
            "open_time": open_time.replace(tzinfo=None),
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
            "tick_count": candle.tick_count,
            "is_synthetic": candle.is_synthetic,
            "is_intervened": candle.intervened,
        }

    def to_entity(self, model: Any) -> Candle:
        return Candle(
            instrument=model.trading_pair,
            bucket_start=model.open_time.replace(tzinfo=timezone.utc).timestamp(),
            open=model.open,
            high=model.high,
            low=model.low,
            close=model.close,
            volume=model.volume,
            is_synthetic=bool(model.is_synthetic),
            interval=int(model.interval_seconds),
            tick_count=int(model.tick_count or 0),
            intervened=bool(model.is_intervened),
        )
