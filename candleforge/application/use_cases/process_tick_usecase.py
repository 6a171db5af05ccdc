"""
CandleForge – Process Tick Use Case
=====================================
Pipeline por tick: reglas → override → velas → publicación.

FLUJO:
  TickSource (on_tick)
       │
       ▼
  ProcessTickUseCase.execute(tick)
       │
       ├── InterventionStore.active_rules(inst, ts)   → candidatas del día
       ├── InterventionResolver.resolve(rules, ts)    → ActiveOverride | None
       ├── PriceOverrideFunction.apply(tick, ovr)     → tick intervenido
       │       └── InterventionJournal.record()       → auditoría
       ├── Snapshotter.record_tick(tick)              → último precio
       └── CandleSynthesizer.process_tick(tick)
               │
               └── Velas cerradas → Snapshotter.on_candle_closed() → sinks

Los ticks de instrumentos no configurados se descartan (log debug).
El motor serializa las llamadas por instrumento.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from candleforge.application.services.candle_synthesizer import CandleSynthesizer
from candleforge.application.services.intervention_journal import InterventionJournal
from candleforge.application.services.intervention_store import InterventionStore
from candleforge.application.services.snapshotter import Snapshotter
from candleforge.domain.entities.candle import Candle
from candleforge.domain.services.intervention_resolver import InterventionResolver
from candleforge.domain.services.price_override import PriceOverrideFunction
from candleforge.domain.value_objects.effective_override import ActiveOverride
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("process_tick")


@dataclass
class ProcessTickResult:
    tick: Tick
    override: Optional[ActiveOverride] = None
    closed_candles: list[Candle] = field(default_factory=list)


class ProcessTickUseCase:
    def __init__(
        self,
        store: InterventionStore,
        resolver: InterventionResolver,
        override_fn: PriceOverrideFunction,
        synthesizer: CandleSynthesizer,
        snapshotter: Snapshotter,
        journal: Optional[InterventionJournal] = None,
        instruments: Optional[Iterable[str]] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._override_fn = override_fn
        self._synthesizer = synthesizer
        self._snapshotter = snapshotter
        self._journal = journal
        self._instruments = frozenset(instruments) if instruments is not None else None
        self._processed_count = 0
        self._intervened_count = 0
        self._dropped_count = 0

    async def execute(self, tick: Tick) -> Optional[ProcessTickResult]:
        if self._instruments is not None and tick.instrument not in self._instruments:
            self._dropped_count += 1
            logger.debug("Tick de instrumento no configurado descartado: %s", tick.instrument)
            return None

        # ── 1. Resolver intervención ──
        rules = self._store.active_rules(tick.instrument, tick.timestamp)
        override = self._resolver.resolve(rules, tick.timestamp) if rules else None

        # ── 2. Aplicar override ──
        adjusted = self._override_fn.apply(tick, override)
        if override is not None:
            self._intervened_count += 1
            if self._journal is not None:
                self._journal.record(tick, adjusted, override)

        # ── 3. Estado + velas ──
        self._snapshotter.record_tick(adjusted)
        closed = self._synthesizer.process_tick(adjusted)
        for candle in closed:
            await self._snapshotter.on_candle_closed(candle)

        self._processed_count += 1
        return ProcessTickResult(tick=adjusted, override=override, closed_candles=closed)

    @property
    def stats(self) -> dict:
        return {
            "processed": self._processed_count,
            "intervened": self._intervened_count,
            "dropped": self._dropped_count,
        }
