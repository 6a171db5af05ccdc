"""
CandleForge – SQL Rule Source
===============================
Implementación de IRuleSource sobre la tabla `market_interventions`.

- Cualquier error de SQLAlchemy → RuleSourceError (el store conserva el
  RuleSet anterior).
- Una fila que no se puede mapear (trend desconocido, ...) se registra y
  se omite.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from candleforge.domain.entities.intervention_rule import InterventionRule
from candleforge.domain.exceptions.domain_errors import RuleSourceError
from candleforge.domain.repositories.rule_source import IRuleSource
from candleforge.infrastructure.persistence.database import DatabaseManager
from candleforge.infrastructure.persistence.mappers.rule_mapper import RuleMapper
from candleforge.infrastructure.persistence.models import MarketInterventionModel
from candleforge.shared.logging.logger import get_logger

logger = get_logger("sql_rule_source")


class SqlRuleSource(IRuleSource):
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db
        self._mapper = RuleMapper()

    async def fetch_rules(self) -> Sequence[InterventionRule]:
        try:
            async with self._db.session() as session:
                result = await session.execute(
                    select(MarketInterventionModel).order_by(MarketInterventionModel.id)
                )
                rows = result.scalars().all()
        except (SQLAlchemyError, RuntimeError) as exc:
            raise RuleSourceError(f"Error leyendo market_interventions: {exc}") from exc

        rules: list[InterventionRule] = []
        for row in rows:
            try:
                rules.append(self._mapper.to_entity(row))
            except (ValueError, TypeError) as exc:
                logger.warning("Fila de intervención %s descartada: %s", row.id, exc)
        return rules
