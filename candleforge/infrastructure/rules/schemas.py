"""
CandleForge – Rule document schemas (pydantic)
================================================
Validación de reglas que llegan como JSON (fichero local o exportación de
la consola de administración).

Acepta tanto snake_case como el camelCase que usa la consola
(tradingPair, startTime, minPrice, isActive, ...).

La coherencia de negocio (min <= max, ventana no vacía) NO se valida aquí:
es responsabilidad de InterventionRule.validate() en el resolver, para que
una regla incoherente se registre y se omita de la misma forma venga de
donde venga.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from candleforge.domain.entities.intervention_rule import (
    InterventionRule,
    Recurrence,
    RecurrenceType,
    Trend,
)


class RecurrenceSchema(BaseModel):
    type: RecurrenceType = RecurrenceType.DAILY
    days: List[int] = Field(default_factory=list)


class RuleSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    instrument: str = Field(
        validation_alias=AliasChoices("instrument", "trading_pair", "tradingPair"),
    )
    start_time: time = Field(validation_alias=AliasChoices("start_time", "startTime"))
    end_time: time = Field(validation_alias=AliasChoices("end_time", "endTime"))
    min_price: Decimal = Field(validation_alias=AliasChoices("min_price", "minPrice"))
    max_price: Decimal = Field(validation_alias=AliasChoices("max_price", "maxPrice"))
    trend: Trend
    priority: int = 1
    enabled: bool = Field(
        default=True, validation_alias=AliasChoices("enabled", "is_active", "isActive"),
    )
    start_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("start_date", "startDate"),
    )
    end_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate"),
    )
    recurrence: Optional[RecurrenceSchema] = None
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt"),
    )
    description: str = ""

    @field_validator("instrument")
    @classmethod
    def _normalize_instrument(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_time(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError("la hora no debe llevar zona; se interpreta en rules_timezone")
        return value

    @field_validator("trend", mode="before")
    @classmethod
    def _lower_trend(cls, value):
        return value.lower() if isinstance(value, str) else value

    def to_entity(self) -> InterventionRule:
        recurrence = None
        if self.recurrence is not None:
            recurrence = Recurrence(type=self.recurrence.type, days=tuple(self.recurrence.days))
        return InterventionRule(
            id=self.id,
            instrument=self.instrument,
            start_time=self.start_time,
            end_time=self.end_time,
            min_price=self.min_price,
            max_price=self.max_price,
            trend=self.trend,
            priority=self.priority,
            enabled=self.enabled,
            start_date=self.start_date,
            end_date=self.end_date,
            recurrence=recurrence,
            created_at=self.created_at,
            description=self.description,
        )
