"""
CandleForge – Domain Value Object: MarketSnapshot
===================================================
Vista de lectura inmutable: último tick y velas recientes por instrumento.

Se reemplaza ENTERO en cada refresh (swap de referencia); jamás se edita
parcialmente, así que un lector ve el snapshot viejo completo o el nuevo
completo, nunca una mezcla.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from candleforge.domain.entities.candle import Candle
from candleforge.domain.value_objects.tick import Tick


@dataclass(frozen=True)
class MarketSnapshot:
    version: int
    taken_at: float
    latest_ticks: Mapping[str, Tick] = field(
        default_factory=lambda: MappingProxyType({})
    )
    candles: Mapping[str, tuple[Candle, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def empty(cls) -> "MarketSnapshot":
        return cls(version=0, taken_at=0.0)

    def latest_price(self, instrument: str) -> Optional[float]:
        """Último precio conocido: tick si existe, si no el close de la última vela."""
        tick = self.latest_ticks.get(instrument)
        if tick is not None:
            return float(tick.price)
        candles = self.candles.get(instrument)
        if candles:
            return float(candles[-1].close)
        return None

    def candles_for(self, instrument: str, count: Optional[int] = None) -> tuple[Candle, ...]:
        candles = self.candles.get(instrument, ())
        if count is None:
            return candles
        return candles[-count:] if count > 0 else ()

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "taken_at": self.taken_at,
            "latest_ticks": {
                inst: tick.to_dict() for inst, tick in self.latest_ticks.items()
            },
            "candles": {
                inst: [c.to_dict() for c in items]
                for inst, items in self.candles.items()
            },
        }
