"""
CandleForge – Market Engine
=============================
Orquesta el ciclo de vida completo del core.

ARRANQUE (start):
  1. Valida configuración (al menos un instrumento → si no, ConfigurationError).
  2. Primer refresh de reglas (un fallo aquí NO es fatal: RuleSet vacío).
  3. Arranca el TickSource con ingest() como callback.
  4. Lanza tres loops: refresco de reglas, reloj de buckets y snapshot.

PARADA (stop):
  1. Detiene el TickSource (cancela fetch pendientes).
  2. Cancela los loops.
  3. Flush de velas abiertas → sinks, y un último snapshot.

CONCURRENCIA:
- Todo corre en un único event loop.
- Un asyncio.Lock POR INSTRUMENTO serializa tick y cierre por reloj, así las
  velas de un instrumento llegan a los sinks en orden aunque un sink await.
- Un error procesando un tick se registra con traceback y el flujo sigue.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, Optional, Sequence

from candleforge.application.ports.tick_source import ITickSource, TickSourceHandle
from candleforge.application.services.candle_synthesizer import CandleSynthesizer
from candleforge.application.services.intervention_store import InterventionStore
from candleforge.application.services.snapshotter import Snapshotter
from candleforge.application.use_cases.process_tick_usecase import ProcessTickUseCase
from candleforge.domain.entities.candle import Candle
from candleforge.domain.exceptions.domain_errors import ConfigurationError
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("market_engine")

# margen tras el borde del bucket antes de cerrar por reloj
_CLOCK_GRACE_SECONDS = 0.05


class MarketEngine:
    def __init__(
        self,
        instruments: Sequence[str],
        tick_source: ITickSource,
        store: InterventionStore,
        process_tick: ProcessTickUseCase,
        synthesizer: CandleSynthesizer,
        snapshotter: Snapshotter,
        snapshot_interval: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._instruments = list(instruments)
        self._tick_source = tick_source
        self._store = store
        self._process_tick = process_tick
        self._synthesizer = synthesizer
        self._snapshotter = snapshotter
        self._snapshot_interval = snapshot_interval
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._handle: Optional[TickSourceHandle] = None
        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._started_at: Optional[float] = None
        self._tick_errors = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def instruments(self) -> list[str]:
        return list(self._instruments)

    def _lock(self, instrument: str) -> asyncio.Lock:
        lock = self._locks.get(instrument)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instrument] = lock
        return lock

    # ════════════════════════════════════════════════════════════════════
    #  Ciclo de vida
    # ════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        if not self._instruments:
            raise ConfigurationError("No hay instrumentos configurados", option="instruments")
        if self._running:
            logger.warning("MarketEngine ya está en ejecución")
            return

        await self._store.refresh()

        self._running = True
        self._started_at = self._clock()
        self._handle = await self._tick_source.start(self.ingest)
        self._tasks = [
            asyncio.create_task(self._store.run(), name="rule_refresh"),
            asyncio.create_task(self._bucket_clock(), name="bucket_clock"),
            asyncio.create_task(
                self._snapshotter.run(self._snapshot_interval), name="snapshot_refresh"
            ),
        ]
        logger.info(
            "MarketEngine iniciado: %d instrumentos, bucket=%ds, fuente=%s",
            len(self._instruments),
            self._synthesizer.interval,
            type(self._tick_source).__name__,
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        if self._handle is not None:
            await self._tick_source.stop(self._handle)
            self._handle = None

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        flushed = await self.flush()
        await self._snapshotter.publish_snapshot()
        logger.info("MarketEngine detenido (%d velas parciales volcadas)", len(flushed))

    # ════════════════════════════════════════════════════════════════════
    #  Entrada de ticks y reloj
    # ════════════════════════════════════════════════════════════════════

    async def ingest(self, tick: Tick) -> None:
        """Callback del TickSource. Los errores se contienen por tick."""
        try:
            async with self._lock(tick.instrument):
                await self._process_tick.execute(tick)
        except Exception as exc:
            self._tick_errors += 1
            logger.error(
                "Error procesando tick %s: %s", tick.instrument, exc, exc_info=True
            )

    async def close_due_buckets(self, now: Optional[float] = None) -> list[Candle]:
        """Cerrar por reloj de pared los buckets vencidos de cada instrumento."""
        now = self._clock() if now is None else now
        closed: list[Candle] = []
        for instrument in self._instruments:
            async with self._lock(instrument):
                candles = self._synthesizer.advance(now, instrument=instrument)
                for candle in candles:
                    await self._snapshotter.on_candle_closed(candle)
                closed.extend(candles)
        return closed

    async def flush(self) -> list[Candle]:
        closed = self._synthesizer.flush()
        for candle in closed:
            await self._snapshotter.on_candle_closed(candle)
        return closed

    async def _bucket_clock(self) -> None:
        interval = self._synthesizer.interval
        try:
            while self._running:
                now = self._clock()
                delay = interval - (now % interval) + _CLOCK_GRACE_SECONDS
                await asyncio.sleep(delay)
                try:
                    await self.close_due_buckets()
                except Exception as exc:
                    logger.error("Error en reloj de buckets: %s", exc, exc_info=True)
        except asyncio.CancelledError:
            logger.info("Reloj de buckets detenido")
            raise

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "started_at": self._started_at,
            "instruments": self._instruments,
            "tick_errors": self._tick_errors,
            "tick_source": {
                "type": type(self._tick_source).__name__,
                **self._tick_source.stats,
            },
            "pipeline": self._process_tick.stats,
            "synthesizer": self._synthesizer.stats,
            "rules": self._store.stats,
            "snapshot": self._snapshotter.stats,
        }
