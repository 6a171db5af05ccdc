"""
CandleForge – In-memory Rule Source
=====================================
Fuente de reglas en memoria. `replace()` simula un commit de la consola
de administración; el InterventionStore lo verá en su próximo refresh.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from candleforge.domain.entities.intervention_rule import InterventionRule
from candleforge.domain.repositories.rule_source import IRuleSource


class InMemoryRuleSource(IRuleSource):
    def __init__(self, rules: Iterable[InterventionRule] = ()) -> None:
        self._rules: tuple[InterventionRule, ...] = tuple(rules)

    def replace(self, rules: Iterable[InterventionRule]) -> None:
        self._rules = tuple(rules)

    async def fetch_rules(self) -> Sequence[InterventionRule]:
        return self._rules
