"""
CandleForge – Application Port: Tick Source
=============================================
Interfaz para adaptadores de feeds de precio (polling REST, stream WS,
random walk sintético).

CONTRATO:
- start(on_tick) lanza las tasks del adaptador y devuelve un handle.
- stop(handle) cancela TODAS las tasks pendientes del handle.
- El adaptador solo emite Ticks normalizados; jamás aplica overrides.
- Un fallo de UN instrumento no debe abortar el lote del ciclo.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from candleforge.domain.value_objects.tick import Tick

TickCallback = Callable[[Tick], Awaitable[None]]


@dataclass
class TickSourceHandle:
    """Referencia a las tasks lanzadas por un start()."""

    name: str
    tasks: list[asyncio.Task] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return any(not task.done() for task in self.tasks)

    async def cancel(self) -> None:
        """Cancela las tasks y espera a que terminen."""
        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()


class ITickSource(ABC):
    """
    Adaptador de upstream → Tick uniforme.

    IMPLEMENTACIONES:
    - RestPollingTickSource (CoinGecko, con fallback random walk)
    - BinanceStreamTickSource (WebSocket push)
    - SyntheticTickSource (random walk puro)
    """

    @abstractmethod
    async def start(self, on_tick: TickCallback) -> TickSourceHandle:
        """
        Empieza a emitir ticks.

        Args:
            on_tick: Coroutine invocada por cada Tick emitido

        Returns:
            Handle para detener el adaptador
        """
        pass

    @abstractmethod
    async def stop(self, handle: TickSourceHandle) -> None:
        """Detiene el adaptador y cancela los fetch pendientes."""
        pass

    @property
    def stats(self) -> dict:
        """Estadísticas de monitoreo (opcional)."""
        return {}
