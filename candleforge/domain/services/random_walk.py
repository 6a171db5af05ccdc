"""
CandleForge – Domain Service: Random Walk Generator
=====================================================
Generador de precios de respaldo cuando no hay upstream disponible.

- Paso log-normal: p' = p * exp(N(0, sigma)) → el precio es SIEMPRE > 0,
  nunca NaN, sin importar cuántos pasos se encadenen.
- Determinista por instrumento: cada instrumento tiene su propio
  random.Random sembrado con "<seed>:<instrumento>", así que dos ejecuciones
  con la misma semilla producen la misma secuencia por instrumento.
- Se siembra con el último precio conocido; si no hay ninguno usa el
  precio inicial configurado o uno aleatorio en [1000, 10000).
"""

from __future__ import annotations

import math
import random
from decimal import Decimal
from typing import Dict, Mapping, Optional

# Precio mínimo representable; evita que un instrumento colapse a 0
MIN_PRICE = Decimal("0.00000001")


class RandomWalkGenerator:
    """Random walk sembrado, un stream independiente por instrumento."""

    def __init__(
        self,
        volatility: float = 0.0005,
        seed: Optional[int] = None,
        initial_prices: Optional[Mapping[str, Decimal]] = None,
    ) -> None:
        if volatility < 0:
            raise ValueError("volatility debe ser >= 0")
        self._volatility = volatility
        self._seed = seed
        self._initial_prices: Dict[str, Decimal] = dict(initial_prices or {})
        self._rngs: Dict[str, random.Random] = {}

    def _rng(self, instrument: str) -> random.Random:
        rng = self._rngs.get(instrument)
        if rng is None:
            rng = random.Random(f"{self._seed}:{instrument}") if self._seed is not None else random.Random()
            self._rngs[instrument] = rng
        return rng

    def initial_price(self, instrument: str) -> Decimal:
        """Precio semilla cuando no existe ningún precio conocido."""
        price = self._initial_prices.get(instrument)
        if price is None or price <= 0:
            price = Decimal(str(round(self._rng(instrument).uniform(1000, 10000), 2)))
            self._initial_prices[instrument] = price
        return price

    def next_price(self, instrument: str, last_price: Optional[Decimal]) -> Decimal:
        """Siguiente precio del walk a partir de `last_price`."""
        if last_price is None or last_price <= 0:
            last_price = self.initial_price(instrument)
        step = self._rng(instrument).gauss(0.0, self._volatility)
        price = last_price * Decimal(repr(math.exp(step)))
        return max(price, MIN_PRICE)
