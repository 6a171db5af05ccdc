"""
CandleForge – Synthetic Tick Source
=====================================
Random walk puro, sin red. Útil en desarrollo y cuando no hay ningún
upstream disponible.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal
from typing import Callable, Dict, Sequence

from candleforge.application.ports.tick_source import (
    ITickSource,
    TickCallback,
    TickSourceHandle,
)
from candleforge.domain.services.random_walk import RandomWalkGenerator
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("synthetic_source")


class SyntheticTickSource(ITickSource):
    def __init__(
        self,
        instruments: Sequence[str],
        generator: RandomWalkGenerator,
        tick_interval: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._instruments = list(instruments)
        self._generator = generator
        self._tick_interval = tick_interval
        self._clock = clock
        self._last_prices: Dict[str, Decimal] = {}
        self._ticks_emitted = 0

    async def start(self, on_tick: TickCallback) -> TickSourceHandle:
        task = asyncio.create_task(self._loop(on_tick), name="synthetic-ticks")
        logger.info(
            "Fuente sintética iniciada: %d instrumentos cada %.1fs",
            len(self._instruments),
            self._tick_interval,
        )
        return TickSourceHandle(name="synthetic", tasks=[task])

    async def stop(self, handle: TickSourceHandle) -> None:
        await handle.cancel()
        logger.info("Fuente sintética detenida (%d ticks)", self._ticks_emitted)

    async def emit_once(self, on_tick: TickCallback) -> list[Tick]:
        now = self._clock()
        ticks = []
        for instrument in self._instruments:
            price = self._generator.next_price(instrument, self._last_prices.get(instrument))
            self._last_prices[instrument] = price
            tick = Tick(
                instrument=instrument,
                price=price,
                volume=Decimal(0),
                timestamp=now,
                source="random_walk",
            )
            ticks.append(tick)
            self._ticks_emitted += 1
            await on_tick(tick)
        return ticks

    async def _loop(self, on_tick: TickCallback) -> None:
        try:
            while True:
                await self.emit_once(on_tick)
                await asyncio.sleep(self._tick_interval)
        except asyncio.CancelledError:
            logger.info("Loop sintético cancelado")
            raise

    @property
    def stats(self) -> dict:
        return {
            "ticks_emitted": self._ticks_emitted,
            "last_prices": {k: float(v) for k, v in self._last_prices.items()},
        }
