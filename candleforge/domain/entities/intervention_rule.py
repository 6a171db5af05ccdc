"""
CandleForge – Domain Entity: InterventionRule
===============================================
Directiva administrativa que fuerza una tendencia de precio dentro de una
banda [min_price, max_price] durante una ventana horaria diaria.

El core SOLO lee reglas; crearlas/editarlas es responsabilidad de la
consola de administración (fuera de alcance).

VENTANA HORARIA:
- start_time / end_time son horas del día (no fechas), semiabiertas
  [start, end). Si start > end la ventana cruza medianoche (22:00–02:00).

CALENDARIO (opcional):
- start_date / end_date acotan los días en que la regla puede activarse.
- recurrence limita los días: daily, weekly (días de semana 0=lunes) o
  monthly (días del mes).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from candleforge.domain.exceptions.domain_errors import InvalidRuleError

SECONDS_PER_DAY = 24 * 60 * 60


class Trend(str, enum.Enum):
    """Tendencia forzada por una regla (variante cerrada)."""

    UP = "up"
    DOWN = "down"
    RANDOM = "random"


class RecurrenceType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True, slots=True)
class Recurrence:
    """Patrón de repetición. `days` vacío = todos los días del patrón."""

    type: RecurrenceType = RecurrenceType.DAILY
    days: tuple[int, ...] = ()

    def includes(self, day: date) -> bool:
        if self.type is RecurrenceType.DAILY or not self.days:
            return True
        if self.type is RecurrenceType.WEEKLY:
            return day.weekday() in self.days
        return day.day in self.days


def seconds_of_day(value: time) -> float:
    """Segundos transcurridos desde medianoche para una hora del día."""
    return (
        value.hour * 3600
        + value.minute * 60
        + value.second
        + value.microsecond / 1_000_000
    )


@dataclass(frozen=True, slots=True)
class InterventionRule:
    """Regla de intervención de mercado (inmutable)."""

    id: int
    instrument: str
    start_time: time
    end_time: time
    min_price: Decimal
    max_price: Decimal
    trend: Trend
    priority: int = 1
    enabled: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    recurrence: Optional[Recurrence] = None
    created_at: Optional[datetime] = None
    description: str = field(default="", compare=False)

    # ─── Validación ─────────────────────────────────────────────────────

    def validate(self) -> None:
        """Lanza InvalidRuleError si la regla no puede aplicarse."""
        if self.min_price <= 0:
            raise InvalidRuleError(
                f"Regla {self.id}: min_price debe ser > 0 ({self.min_price})",
                rule_id=self.id,
            )
        if self.min_price > self.max_price:
            raise InvalidRuleError(
                f"Regla {self.id}: min_price {self.min_price} > max_price {self.max_price}",
                rule_id=self.id,
            )
        if self.start_time.tzinfo is not None or self.end_time.tzinfo is not None:
            raise InvalidRuleError(
                f"Regla {self.id}: start_time/end_time deben ser horas locales sin zona",
                rule_id=self.id,
            )
        if self.start_time == self.end_time:
            raise InvalidRuleError(
                f"Regla {self.id}: ventana vacía ({self.start_time:%H:%M})",
                rule_id=self.id,
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidRuleError(
                f"Regla {self.id}: start_date posterior a end_date",
                rule_id=self.id,
            )

    # ─── Ventana horaria ────────────────────────────────────────────────

    @property
    def wraps_midnight(self) -> bool:
        return self.start_time > self.end_time

    @property
    def window_seconds(self) -> float:
        """Duración de la ventana en segundos (maneja cruce de medianoche)."""
        start = seconds_of_day(self.start_time)
        end = seconds_of_day(self.end_time)
        return (end - start) % SECONDS_PER_DAY

    def contains_time(self, moment: time) -> bool:
        """¿La hora del día cae en [start, end)?"""
        if self.wraps_midnight:
            return moment >= self.start_time or moment < self.end_time
        return self.start_time <= moment < self.end_time

    def elapsed_seconds(self, moment: time) -> float:
        """Segundos transcurridos desde el inicio de la ventana."""
        return (seconds_of_day(moment) - seconds_of_day(self.start_time)) % SECONDS_PER_DAY

    # ─── Calendario ─────────────────────────────────────────────────────

    def applies_on(self, day: date) -> bool:
        """¿La regla está habilitada para ese día de calendario?"""
        if not self.enabled:
            return False
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        if self.recurrence is not None and not self.recurrence.includes(day):
            return False
        return True

    def recency_key(self) -> tuple[float, int]:
        """Clave de desempate: la regla creada más recientemente gana."""
        created = self.created_at.timestamp() if self.created_at else 0.0
        return (created, self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "instrument": self.instrument,
            "start_time": self.start_time.strftime("%H:%M:%S"),
            "end_time": self.end_time.strftime("%H:%M:%S"),
            "min_price": float(self.min_price),
            "max_price": float(self.max_price),
            "trend": self.trend.value,
            "priority": self.priority,
            "enabled": self.enabled,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "recurrence": (
                {"type": self.recurrence.type.value, "days": list(self.recurrence.days)}
                if self.recurrence else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "description": self.description,
        }
