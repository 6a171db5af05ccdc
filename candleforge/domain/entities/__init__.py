"""Domain entities."""
from candleforge.domain.entities.candle import Candle
from candleforge.domain.entities.intervention_rule import (
    InterventionRule,
    Recurrence,
    RecurrenceType,
    Trend,
)

__all__ = ["Candle", "InterventionRule", "Recurrence", "RecurrenceType", "Trend"]
