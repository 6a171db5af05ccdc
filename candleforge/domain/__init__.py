"""
CandleForge – Domain Layer
============================
Núcleo puro del sistema. Sin frameworks.

- entities/: InterventionRule, Candle
- value_objects/: Tick, RuleSet, ActiveOverride, MarketSnapshot, InterventionLog
- services/: InterventionResolver, PriceOverrideFunction, RandomWalkGenerator
- repositories/: Interfaces abstractas (IRuleSource, ICandleSink)
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de application/, infrastructure/ ni
presentation/.
"""

from candleforge.domain.entities.candle import Candle
from candleforge.domain.entities.intervention_rule import InterventionRule, Trend
from candleforge.domain.value_objects.tick import Tick

__all__ = [
    "Candle",
    "InterventionRule",
    "Trend",
    "Tick",
]
