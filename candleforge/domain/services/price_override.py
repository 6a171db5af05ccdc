"""
CandleForge – Domain Service: Price Override Function
=======================================================
Calcula el precio intervenido de un tick a partir del override efectivo.

    UP     → min + (max - min) * progress
    DOWN   → max - (max - min) * progress
    RANDOM → min + U[0,1) * (max - min)

Después se aplica ruido multiplicativo acotado (|ruido| <= noise_max_pct)
para que la línea no sea perfectamente lisa, y el resultado se recorta a la
banda [min, max] de la regla.

El volumen NO cambia: la intervención afecta al precio, no al volumen
negociado. High/low se recortan aguas abajo en el CandleSynthesizer.

La única fuente de aleatoriedad es el `random.Random` inyectado; con la
misma semilla, la salida es reproducible.
"""

from __future__ import annotations

import random
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from candleforge.domain.entities.intervention_rule import Trend
from candleforge.domain.value_objects.effective_override import ActiveOverride
from candleforge.domain.value_objects.tick import Tick


def _to_decimal(value: float) -> Decimal:
    return Decimal(repr(value))


class PriceOverrideFunction:
    """Aplica un ActiveOverride a un Tick y devuelve un Tick nuevo."""

    def __init__(
        self,
        noise_max_pct: float = 0.001,
        rng: Optional[random.Random] = None,
    ) -> None:
        if noise_max_pct < 0:
            raise ValueError("noise_max_pct debe ser >= 0")
        self._noise_max_pct = noise_max_pct
        self._rng = rng or random.Random()

    @property
    def noise_max_pct(self) -> float:
        return self._noise_max_pct

    def target_price(self, override: ActiveOverride) -> Decimal:
        """Precio objetivo sin ruido según la tendencia de la regla."""
        rule = override.rule
        span = rule.max_price - rule.min_price
        trend = rule.trend

        if trend is Trend.UP:
            return rule.min_price + span * _to_decimal(override.progress)
        if trend is Trend.DOWN:
            return rule.max_price - span * _to_decimal(override.progress)
        if trend is Trend.RANDOM:
            return rule.min_price + span * _to_decimal(self._rng.random())
        raise ValueError(f"Tendencia no soportada: {trend!r}")

    def apply(self, tick: Tick, override: Optional[ActiveOverride]) -> Tick:
        if override is None:
            return tick

        rule = override.rule
        price = self.target_price(override)

        if self._noise_max_pct > 0:
            noise = self._rng.uniform(-self._noise_max_pct, self._noise_max_pct)
            price = price * (Decimal(1) + _to_decimal(noise))

        price = min(rule.max_price, max(rule.min_price, price))
        return replace(tick, price=price, intervened=True)
