"""
CandleForge – Intervention Journal
====================================
Auditoría en memoria de los ticks intervenidos.

- deque(maxlen) → solo se retienen las últimas N entradas.
- Si la desviación relativa supera el umbral se emite un WARNING: una
  regla mal configurada puede estar alejando el precio demasiado del real.
"""

from __future__ import annotations

from collections import deque
from typing import Optional

from candleforge.domain.value_objects.effective_override import ActiveOverride
from candleforge.domain.value_objects.intervention_log import InterventionLog
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("intervention_journal")


class InterventionJournal:
    def __init__(self, max_entries: int = 1000, deviation_alert: float = 0.1) -> None:
        self._entries: deque[InterventionLog] = deque(maxlen=max_entries)
        self._deviation_alert = deviation_alert
        self._total = 0

    def record(self, original: Tick, adjusted: Tick, override: ActiveOverride) -> InterventionLog:
        deviation = 0.0
        if original.price > 0:
            deviation = float(abs(adjusted.price - original.price) / original.price)

        entry = InterventionLog(
            rule_id=override.rule.id,
            instrument=original.instrument,
            timestamp=original.timestamp,
            original_price=original.price,
            adjusted_price=adjusted.price,
            deviation=deviation,
            reason=f"trend={override.rule.trend.value} progress={override.progress:.3f}",
        )
        self._entries.append(entry)
        self._total += 1

        if deviation > self._deviation_alert:
            logger.warning(
                "Desviación alta en %s: %.2f%% (regla %s, %s → %s)",
                entry.instrument,
                deviation * 100,
                entry.rule_id,
                entry.original_price,
                entry.adjusted_price,
            )
        return entry

    def recent(self, limit: int = 100, instrument: Optional[str] = None) -> list[InterventionLog]:
        """Últimas entradas, la más reciente primero."""
        items = [
            e for e in reversed(self._entries)
            if instrument is None or e.instrument == instrument
        ]
        return items[:limit]

    @property
    def total(self) -> int:
        return self._total

    def __len__(self) -> int:
        return len(self._entries)
