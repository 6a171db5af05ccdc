"""
CandleForge – Snapshotter / Publisher
=======================================
Estado en memoria por instrumento (último tick + buffer de velas cerradas)
y snapshot inmutable que leen los consumidores.

PROTECCIÓN DE MEMORIA:
- El buffer de velas usa collections.deque con maxlen → descarta las velas
  más antiguas automáticamente. O(1) en append.

ATOMICIDAD DEL SNAPSHOT:
- refresh() construye un MarketSnapshot NUEVO a partir de copias de los
  buffers y sustituye la referencia en una única asignación. Un lector de
  current_snapshot() ve el snapshot viejo completo o el nuevo completo.
- La cadencia de refresh es fija e independiente del ritmo de ticks.

ENTREGA A SINKS:
- Las velas cerradas se entregan EN ORDEN a cada sink configurado.
- Un sink que falla se registra y NO impide la entrega a los demás.
- Una vela fuera de orden (bucket_start no creciente) se descarta con
  ERROR: nunca se publica una serie desordenada.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Optional, Sequence

from candleforge.application.ports.event_publisher import IEventPublisher
from candleforge.domain.entities.candle import Candle
from candleforge.domain.repositories.candle_sink import ICandleSink
from candleforge.domain.value_objects.snapshot import MarketSnapshot
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("snapshotter")

SNAPSHOT_TOPIC = "snapshot"


@dataclass
class InstrumentState:
    """Estado de mercado para UN instrumento."""

    instrument: str
    max_candles: int
    last_tick: Optional[Tick] = None
    candles: deque = field(init=False)
    last_bucket_start: Optional[float] = None

    # Contadores de monitoreo
    total_ticks: int = 0
    total_candles: int = 0
    synthetic_candles: int = 0

    def __post_init__(self) -> None:
        self.candles = deque(maxlen=self.max_candles)


class Snapshotter:
    """
    Publicador de velas cerradas y dueño del snapshot visible.

    Uso:
        snapshotter = Snapshotter(max_candles=240, sinks=[EventBusCandleSink(bus)])
        snapshotter.record_tick(tick)
        await snapshotter.on_candle_closed(candle)
        snap = snapshotter.current_snapshot()
    """

    def __init__(
        self,
        max_candles: int = 240,
        sinks: Sequence[ICandleSink] = (),
        event_publisher: Optional[IEventPublisher] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_candles = max_candles
        self._sinks: list[ICandleSink] = list(sinks)
        self._publisher = event_publisher
        self._clock = clock
        self._states: Dict[str, InstrumentState] = {}
        self._snapshot = MarketSnapshot.empty()
        self._sink_failures: Dict[str, int] = {}
        self._out_of_order = 0

    def get_or_create(self, instrument: str) -> InstrumentState:
        state = self._states.get(instrument)
        if state is None:
            state = InstrumentState(instrument=instrument, max_candles=self._max_candles)
            self._states[instrument] = state
        return state

    # ─── Escritura ──────────────────────────────────────────────────────

    def record_tick(self, tick: Tick) -> None:
        state = self.get_or_create(tick.instrument)
        state.last_tick = tick
        state.total_ticks += 1

    async def on_candle_closed(self, candle: Candle) -> None:
        """Añadir al buffer y entregar en orden a todos los sinks."""
        state = self.get_or_create(candle.instrument)
        if state.last_bucket_start is not None and candle.bucket_start <= state.last_bucket_start:
            self._out_of_order += 1
            logger.error(
                "Vela fuera de orden descartada: %s bucket=%.0f (último=%.0f)",
                candle.instrument,
                candle.bucket_start,
                state.last_bucket_start,
            )
            return

        state.last_bucket_start = candle.bucket_start
        state.candles.append(candle)
        state.total_candles += 1
        if candle.is_synthetic:
            state.synthetic_candles += 1

        for sink in self._sinks:
            try:
                await sink.on_candle_closed(candle)
            except Exception as exc:
                name = type(sink).__name__
                self._sink_failures[name] = self._sink_failures.get(name, 0) + 1
                logger.error(
                    "Sink %s falló con la vela %s@%.0f: %s",
                    name,
                    candle.instrument,
                    candle.bucket_start,
                    exc,
                    exc_info=True,
                )

    # ─── Snapshot ───────────────────────────────────────────────────────

    def refresh(self) -> MarketSnapshot:
        """Construir un snapshot nuevo y sustituir la referencia."""
        latest = {
            inst: state.last_tick
            for inst, state in self._states.items()
            if state.last_tick is not None
        }
        candles = {inst: tuple(state.candles) for inst, state in self._states.items()}
        snapshot = MarketSnapshot(
            version=self._snapshot.version + 1,
            taken_at=self._clock(),
            latest_ticks=MappingProxyType(latest),
            candles=MappingProxyType(candles),
        )
        self._snapshot = snapshot
        return snapshot

    async def publish_snapshot(self) -> MarketSnapshot:
        """refresh() + publicación en el bus de eventos."""
        snapshot = self.refresh()
        if self._publisher is not None:
            await self._publisher.publish(SNAPSHOT_TOPIC, snapshot)
        return snapshot

    def current_snapshot(self) -> MarketSnapshot:
        return self._snapshot

    async def run(self, interval: float) -> None:
        """Loop de refresh a cadencia fija (se cancela desde el motor)."""
        logger.info("Snapshot cada %.1fs", interval)
        try:
            while True:
                try:
                    await self.publish_snapshot()
                except Exception as exc:
                    logger.error("Error publicando snapshot: %s", exc, exc_info=True)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Loop de snapshot detenido")
            raise

    # ─── Monitoreo ──────────────────────────────────────────────────────

    @property
    def instruments(self) -> list[str]:
        return list(self._states)

    @property
    def stats(self) -> dict:
        return {
            "snapshot_version": self._snapshot.version,
            "snapshot_taken_at": self._snapshot.taken_at,
            "sinks": [type(s).__name__ for s in self._sinks],
            "sink_failures": dict(self._sink_failures),
            "out_of_order": self._out_of_order,
            "instruments": {
                inst: {
                    "ticks": s.total_ticks,
                    "candles": s.total_candles,
                    "synthetic_candles": s.synthetic_candles,
                    "buffered": len(s.candles),
                }
                for inst, s in self._states.items()
            },
        }
