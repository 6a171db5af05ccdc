"""
CandleForge – Domain Value Object: Tick
=========================================
Observación atómica de precio/volumen de un instrumento.

- frozen=True → inmutable; una intervención produce un Tick NUEVO
  (dataclasses.replace), nunca edita el original.
- slots=True  → menor footprint de memoria en hot-path.
- Decimal para precio y volumen: los rangos de intervención se definen en
  precios exactos y no queremos arrastrar error binario a las velas.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class Tick:
    """Tick de precio emitido por un TickSource."""

    instrument: str        # e.g. "BTC/USDT"
    price: Decimal
    volume: Decimal
    timestamp: float       # epoch UNIX en segundos
    source: str = "upstream"
    intervened: bool = False

    def to_dict(self) -> dict:
        """Serialización para WebSocket / frontend."""
        return {
            "instrument": self.instrument,
            "price": float(self.price),
            "volume": float(self.volume),
            "timestamp": self.timestamp,
            "source": self.source,
            "intervened": self.intervened,
        }
