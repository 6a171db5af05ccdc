"""
CandleForge – Domain Entity: Candle
=====================================
Vela OHLCV inmutable de un bucket ya cerrado.

Decisiones de diseño:
- frozen=True → una vela cerrada NUNCA se reabre ni se modifica.
- La vela en construcción vive solo dentro del CandleSynthesizer; aquí
  únicamente existen velas terminadas, listas para publicar.
- is_synthetic=True marca velas sin ticks reales (relleno de huecos,
  heartbeat o flush de shutdown). Su volumen es 0 para que los
  consumidores de analítica de volumen puedan excluirlas.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura del bucket."""

    instrument: str
    bucket_start: float    # epoch de apertura, alineado al intervalo
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    is_synthetic: bool
    interval: int          # duración del bucket en segundos
    tick_count: int = 0
    intervened: bool = False

    @property
    def bucket_end(self) -> float:
        return self.bucket_start + self.interval

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "instrument": self.instrument,
            "bucket_start": self.bucket_start,
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "close": float(self.close),
            "volume": float(self.volume),
            "is_synthetic": self.is_synthetic,
            "interval": self.interval,
            "tick_count": self.tick_count,
            "intervened": self.intervened,
        }
