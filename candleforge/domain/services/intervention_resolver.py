"""
CandleForge – Domain Service: Intervention Resolver
=====================================================
Elige como máximo UNA regla efectiva por instrumento e instante.

ALGORITMO:
  1. Descartar reglas inválidas (se loguean una sola vez por id).
  2. Filtrar por ventana horaria [start, end) en la zona horaria de reglas.
     Cruce de medianoche (start > end) → t >= start OR t < end.
  3. 0 coincidencias → None.
  4. N coincidencias → mayor priority; empate → la creada más recientemente.
  5. progress = transcurrido / duración de la ventana, acotado a [0, 1].

POLÍTICA DE SOLAPAMIENTO:
  "Gana la prioridad más alta, desempata la más reciente" es una decisión
  de política explícita: la consola de administración no define qué pasa
  cuando dos ventanas se pisan.

Sin estado de negocio → se puede invocar en paralelo para instrumentos
distintos sin sincronización.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Optional

from candleforge.domain.entities.intervention_rule import InterventionRule
from candleforge.domain.exceptions.domain_errors import InvalidRuleError
from candleforge.domain.value_objects.effective_override import ActiveOverride

logger = logging.getLogger("candleforge.intervention_resolver")


class InterventionResolver:
    """
    Resuelve solapamientos entre reglas candidatas.

    Uso:
        resolver = InterventionResolver(ZoneInfo("Asia/Shanghai"))
        override = resolver.resolve(store.active_rules(inst, ts), ts)
    """

    def __init__(self, tz: Optional[tzinfo] = None) -> None:
        self._tz = tz or timezone.utc
        # ids ya reportados como inválidos, para no inundar el log por tick
        self._reported_invalid: set = set()

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def local_datetime(self, at: float) -> datetime:
        return datetime.fromtimestamp(at, tz=self._tz)

    def matching_rules(
        self, rules: Iterable[InterventionRule], at: float
    ) -> list[InterventionRule]:
        """Reglas válidas cuya ventana horaria contiene `at`."""
        moment = self.local_datetime(at).time()
        matched: list[InterventionRule] = []
        for rule in rules:
            try:
                rule.validate()
            except InvalidRuleError as exc:
                if rule.id not in self._reported_invalid:
                    self._reported_invalid.add(rule.id)
                    logger.warning("Regla ignorada: %s", exc.message)
                continue
            if rule.contains_time(moment):
                matched.append(rule)
        return matched

    def resolve(
        self, rules: Iterable[InterventionRule], at: float
    ) -> Optional[ActiveOverride]:
        """Override efectivo para `at`, o None si ninguna regla aplica."""
        matched = self.matching_rules(rules, at)
        if not matched:
            return None

        if len(matched) > 1:
            matched.sort(key=lambda r: (r.priority, r.recency_key()), reverse=True)
            logger.debug(
                "Solapamiento en %s: %d reglas, gana id=%s (priority=%d)",
                matched[0].instrument, len(matched), matched[0].id, matched[0].priority,
            )
        winner = matched[0]

        moment = self.local_datetime(at).time()
        duration = winner.window_seconds
        progress = winner.elapsed_seconds(moment) / duration
        progress = min(1.0, max(0.0, progress))
        return ActiveOverride(rule=winner, progress=progress)
