"""
CandleForge – SQL Candle Sink
===============================
Persiste cada vela cerrada en `market_kline_data`.

Los errores se propagan: el Snapshotter los registra por sink y sigue
entregando a los demás.
"""

from __future__ import annotations

from candleforge.domain.entities.candle import Candle
from candleforge.domain.repositories.candle_sink import ICandleSink
from candleforge.infrastructure.persistence.database import DatabaseManager
from candleforge.infrastructure.persistence.mappers.candle_mapper import CandleMapper
from candleforge.infrastructure.persistence.models import MarketKlineModel
from candleforge.shared.logging.logger import get_logger

logger = get_logger("sql_candle_sink")


class SqlCandleSink(ICandleSink):
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        self._mapper = CandleMapper()
        self._saved = 0

    async def on_candle_closed(self, candle: Candle) -> None:
        async with self._db.session() as session:
            session.add(MarketKlineModel(**self._mapper.to_model(candle)))
            await session.commit()
        self._saved += 1
        logger.debug("Vela guardada: %s @ %.0f", candle.instrument, candle.bucket_start)

    @property
    def saved(self) -> int:
        return self._saved
