"""
CandleForge – Domain Value Object: RuleSet
============================================
Snapshot versionado e inmutable de TODAS las reglas de intervención leídas
de la fuente administrativa en un refresh.

Sustituye al objeto de settings global y mutable: los consumidores reciben
un RuleSet concreto (con versión y hora de lectura) en vez de leer un
estado compartido que puede cambiar bajo sus pies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from candleforge.domain.entities.intervention_rule import InterventionRule


@dataclass(frozen=True)
class RuleSet:
    version: int
    fetched_at: float
    by_instrument: Mapping[str, tuple[InterventionRule, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def build(
        cls, version: int, fetched_at: float, rules: Iterable[InterventionRule]
    ) -> "RuleSet":
        grouped: dict[str, list[InterventionRule]] = {}
        for rule in rules:
            grouped.setdefault(rule.instrument, []).append(rule)
        frozen = {inst: tuple(items) for inst, items in grouped.items()}
        return cls(
            version=version,
            fetched_at=fetched_at,
            by_instrument=MappingProxyType(frozen),
        )

    @classmethod
    def empty(cls) -> "RuleSet":
        return cls(version=0, fetched_at=0.0)

    def for_instrument(self, instrument: str) -> tuple[InterventionRule, ...]:
        return self.by_instrument.get(instrument, ())

    @property
    def rule_count(self) -> int:
        return sum(len(items) for items in self.by_instrument.values())

    def all_rules(self) -> list[InterventionRule]:
        return [rule for items in self.by_instrument.values() for rule in items]
