"""
CandleForge – Intervention Store
==================================
Mantiene el RuleSet vigente leído de la fuente administrativa.

REFRESCO:
- refresh() lee TODAS las reglas y construye un RuleSet nuevo (versión +1)
  que reemplaza al anterior con un simple swap de referencia.
- Si la fuente falla se conserva el RuleSet anterior y se registra el
  error; el motor sigue funcionando con las reglas conocidas.
- run() refresca cada `refresh_interval` segundos (staleness acotada).

CONSULTA:
- active_rules(instrument, at) filtra por calendario (enabled, rango de
  fechas, recurrencia) en la zona horaria de reglas. El filtro por hora
  del día y la resolución de conflictos son del InterventionResolver.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

from candleforge.domain.entities.intervention_rule import InterventionRule
from candleforge.domain.exceptions.domain_errors import RuleSourceError
from candleforge.domain.repositories.rule_source import IRuleSource
from candleforge.domain.value_objects.rule_set import RuleSet
from candleforge.shared.logging.logger import get_logger

logger = get_logger("intervention_store")


class InterventionStore:
    """Caché versionada de reglas con refresco periódico."""

    def __init__(
        self,
        source: IRuleSource,
        refresh_interval: float = 30.0,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._refresh_interval = refresh_interval
        self._tz = tz or timezone.utc
        self._clock = clock
        self._rule_set = RuleSet.empty()
        self._failures = 0
        self._last_error: Optional[str] = None

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    @property
    def refresh_interval(self) -> float:
        return self._refresh_interval

    def is_stale(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now - self._rule_set.fetched_at >= self._refresh_interval

    async def refresh(self) -> RuleSet:
        """Releer la fuente. En fallo conserva el RuleSet anterior."""
        try:
            rules = await self._source.fetch_rules()
        except RuleSourceError as exc:
            self._failures += 1
            self._last_error = exc.message
            logger.warning(
                "Fuente de reglas no disponible (se mantiene v%d): %s",
                self._rule_set.version,
                exc.message,
            )
            return self._rule_set

        previous = self._rule_set
        self._rule_set = RuleSet.build(previous.version + 1, self._clock(), rules)
        self._last_error = None
        if self._rule_set.rule_count != previous.rule_count:
            logger.info(
                "RuleSet v%d cargado: %d reglas en %d instrumentos",
                self._rule_set.version,
                self._rule_set.rule_count,
                len(self._rule_set.by_instrument),
            )
        return self._rule_set

    async def ensure_fresh(self) -> RuleSet:
        if self.is_stale():
            return await self.refresh()
        return self._rule_set

    def active_rules(self, instrument: str, at: float) -> list[InterventionRule]:
        """Reglas del instrumento habilitadas para el día de `at`."""
        candidates = self._rule_set.for_instrument(instrument)
        if not candidates:
            return []
        day = datetime.fromtimestamp(at, tz=self._tz).date()
        return [rule for rule in candidates if rule.applies_on(day)]

    async def run(self) -> None:
        """Loop de refresco periódico (se cancela desde el motor)."""
        logger.info("Refresco de reglas cada %.1fs", self._refresh_interval)
        try:
            while True:
                await asyncio.sleep(self._refresh_interval)
                try:
                    await self.refresh()
                except Exception as exc:
                    self._failures += 1
                    self._last_error = str(exc)
                    logger.error("Error inesperado refrescando reglas: %s", exc, exc_info=True)
        except asyncio.CancelledError:
            logger.info("Loop de refresco de reglas detenido")
            raise

    @property
    def stats(self) -> dict:
        return {
            "version": self._rule_set.version,
            "fetched_at": self._rule_set.fetched_at,
            "rule_count": self._rule_set.rule_count,
            "failures": self._failures,
            "last_error": self._last_error,
        }
