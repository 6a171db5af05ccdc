"""
CandleForge – Domain Value Object: ActiveOverride
===================================================
Resultado resuelto para UN instrumento en UN instante.

El "EffectiveOverride" es `ActiveOverride | None`: None significa que
ninguna regla aplica y el tick pasa intacto.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from candleforge.domain.entities.intervention_rule import InterventionRule


@dataclass(frozen=True, slots=True)
class ActiveOverride:
    """Regla efectiva + fracción transcurrida de su ventana, en [0, 1]."""

    rule: InterventionRule
    progress: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.progress <= 1.0:
            raise ValueError(f"progress fuera de [0, 1]: {self.progress}")

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule.id,
            "trend": self.rule.trend.value,
            "progress": round(self.progress, 6),
        }


EffectiveOverride = Optional[ActiveOverride]
