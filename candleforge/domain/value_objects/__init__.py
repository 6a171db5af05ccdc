"""Domain value objects (inmutables)."""
from candleforge.domain.value_objects.effective_override import ActiveOverride, EffectiveOverride
from candleforge.domain.value_objects.intervention_log import InterventionLog
from candleforge.domain.value_objects.rule_set import RuleSet
from candleforge.domain.value_objects.snapshot import MarketSnapshot
from candleforge.domain.value_objects.tick import Tick

__all__ = [
    "ActiveOverride",
    "EffectiveOverride",
    "InterventionLog",
    "RuleSet",
    "MarketSnapshot",
    "Tick",
]
