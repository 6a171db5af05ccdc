"""
CandleForge – Rule Mapper
===========================
Mapea entre InterventionRule (entidad de dominio) y MarketInterventionModel (ORM).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

from candleforge.domain.entities.intervention_rule import (
    InterventionRule,
    Recurrence,
    RecurrenceType,
    Trend,
)


class RuleMapper:
    """Mapper bidireccional InterventionRule ↔ MarketInterventionModel."""

    def to_entity(self, model: Any) -> InterventionRule:
        """
        Fila ORM → entidad.

        Raises:
            ValueError: trend o recurrencia con valores desconocidos
        """
        recurrence = None
        raw = model.recurrence
        if raw:
            recurrence = Recurrence(
                type=RecurrenceType(str(raw.get("type", "daily")).lower()),
                days=tuple(int(d) for d in raw.get("days", [])),
            )
        return InterventionRule(
            id=int(model.id),
            instrument=model.trading_pair.strip().upper(),
            start_time=model.start_time,
            end_time=model.end_time,
            min_price=Decimal(model.min_price),
            max_price=Decimal(model.max_price),
            trend=Trend(str(model.trend).lower()),
            priority=1 if model.priority is None else int(model.priority),
            enabled=bool(model.is_active),
            start_date=model.start_date,
            end_date=model.end_date,
            recurrence=recurrence,
            created_at=model.created_at,
            description=model.description or "",
        )

    def to_model(self, rule: InterventionRule) -> Dict[str, Any]:
        """Entidad → dict de columnas para crear MarketInterventionModel."""
        data: Dict[str, Any] = {
            "id": rule.id,
            "trading_pair": rule.instrument,
            "start_time": rule.start_time,
            "end_time": rule.end_time,
            "min_price": rule.min_price,
            "max_price": rule.max_price,
            "trend": rule.trend.value,
            "priority": rule.priority,
            "is_active": rule.enabled,
            "start_date": rule.start_date,
            "end_date": rule.end_date,
            "recurrence": (
                {"type": rule.recurrence.type.value, "days": list(rule.recurrence.days)}
                if rule.recurrence else None
            ),
            "description": rule.description or None,
        }
        if rule.created_at is not None:
            data["created_at"] = rule.created_at
        return data
