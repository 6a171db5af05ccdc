"""
CandleForge – Domain Repository Interface: Candle Sink
========================================================
Destino de las velas cerradas (persistencia, broadcast, ...).

GARANTÍA DEL CORE:
- on_candle_closed() se invoca en orden de bucket_start por instrumento,
  sin huecos.
- Qué se hace con la vela (guardar, difundir) es responsabilidad del sink.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from candleforge.domain.entities.candle import Candle


class ICandleSink(ABC):
    """Receptor de velas cerradas."""

    @abstractmethod
    async def on_candle_closed(self, candle: Candle) -> None:
        """
        Recibe una vela cerrada e inmutable.

        Args:
            candle: Vela terminada (nunca se reabrirá)
        """
        pass
