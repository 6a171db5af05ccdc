"""
CandleForge – Candle Synthesizer
==================================
Agrega ticks (ya intervenidos) en velas OHLCV por instrumento y bucket.

ALGORITMO:
  1. El primer tick de un bucket abre una vela temporal (mutable):
     open = high = low = close = precio del tick.
  2. Cada tick del mismo bucket actualiza high/low/close y suma volumen.
  3. Un tick de un bucket posterior cierra la vela actual, rellena los
     buckets intermedios con velas planas sintéticas y abre una nueva.
  4. advance(now) cierra por reloj de pared los buckets vencidos aunque no
     lleguen ticks, y abre un bucket "heartbeat" con open = close previo.

SIN HUECOS:
- Entre dos velas publicadas consecutivas de un instrumento, el
  bucket_start avanza exactamente `interval`. Un hueco se rellena con
  velas planas (O=H=L=C=close previo, volumen 0, is_synthetic=True),
  acotado a `max_backfill_buckets` para no inundar tras una caída larga.

RELOJ DESINCRONIZADO:
- Un tick con timestamp anterior al bucket abierto NO reabre una vela
  cerrada; se acota al bucket abierto y se contabiliza.

INVARIANTE:
- low <= min(open, close) <= max(open, close) <= high en TODA vela;
  update() mantiene high/low incluyendo open y close.

Operación O(1) por tick, sin I/O ni await. El motor serializa el acceso
por instrumento; este objeto no tiene locks propios.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from candleforge.domain.entities.candle import Candle
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("candle_synthesizer")

_ZERO = Decimal(0)


@dataclass
class _BuildingCandle:
    """Vela mutable en construcción (solo uso interno)."""

    instrument: str
    bucket_start: float
    interval: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = _ZERO
    tick_count: int = 0
    intervened: bool = False

    @property
    def bucket_end(self) -> float:
        return self.bucket_start + self.interval

    def update(self, tick: Tick) -> None:
        """Actualizar OHLCV con un nuevo tick."""
        self.close = tick.price
        self.high = max(self.high, tick.price, self.open)
        self.low = min(self.low, tick.price, self.open)
        self.volume += tick.volume
        self.tick_count += 1
        self.intervened = self.intervened or tick.intervened

    def freeze(self, synthetic: Optional[bool] = None) -> Candle:
        """Convertir en Candle inmutable."""
        return Candle(
            instrument=self.instrument,
            bucket_start=self.bucket_start,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            is_synthetic=self.tick_count == 0 if synthetic is None else synthetic,
            interval=self.interval,
            tick_count=self.tick_count,
            intervened=self.intervened,
        )


class CandleSynthesizer:
    """
    Construye velas OHLCV por instrumento a partir de ticks.

    Uso:
        synth = CandleSynthesizer(interval=60)
        closed = synth.process_tick(tick)      # lista, normalmente vacía
        closed += synth.advance(time.time())   # cierre por reloj
    """

    def __init__(self, interval: int = 60, max_backfill_buckets: int = 240) -> None:
        if interval <= 0:
            raise ValueError("interval debe ser > 0")
        if max_backfill_buckets < 0:
            raise ValueError("max_backfill_buckets debe ser >= 0")
        self._interval = interval
        self._max_backfill = max_backfill_buckets
        # instrument → vela en construcción
        self._building: Dict[str, _BuildingCandle] = {}
        # instrument → (inicio del siguiente bucket esperado, último close)
        self._closed_until: Dict[str, tuple[float, Decimal]] = {}
        self._skewed_ticks = 0
        self._synthetic_candles = 0
        self._skipped_buckets = 0
        logger.info(
            "CandleSynthesizer inicializado (intervalo=%ds, backfill<=%d)",
            interval,
            max_backfill_buckets,
        )

    @property
    def interval(self) -> int:
        return self._interval

    def align(self, epoch: float) -> float:
        """Alinear un timestamp al inicio de su bucket."""
        return float(math.floor(epoch / self._interval) * self._interval)

    # ════════════════════════════════════════════════════════════════════
    #  Ticks
    # ════════════════════════════════════════════════════════════════════

    def process_tick(self, tick: Tick) -> List[Candle]:
        """
        Procesar un tick. Retorna las velas que se cerraron (en orden).
        """
        instrument = tick.instrument
        bucket = self.align(tick.timestamp)
        building = self._building.get(instrument)

        # ── CASO 1: No hay vela abierta → abrir (rellenando si hace falta) ──
        if building is None:
            closed: List[Candle] = []
            previous = self._closed_until.get(instrument)
            if previous is not None:
                next_start, last_close = previous
                if bucket < next_start:
                    self._count_skew(tick, next_start)
                    bucket = next_start
                closed = self._fill_gap(instrument, next_start, bucket, last_close)
            self._building[instrument] = self._open_from_tick(tick, bucket)
            return closed

        # ── CASO 2: Tick del bucket abierto, o atrasado (se acota) ──
        if bucket <= building.bucket_start:
            if bucket < building.bucket_start:
                self._count_skew(tick, building.bucket_start)
            building.update(tick)
            return []

        # ── CASO 3: Tick de un bucket posterior → cerrar, rellenar, abrir ──
        closed = self._close(instrument, bucket)
        self._building[instrument] = self._open_from_tick(tick, bucket)
        return closed

    # ════════════════════════════════════════════════════════════════════
    #  Reloj de pared
    # ════════════════════════════════════════════════════════════════════

    def advance(self, now: float, instrument: Optional[str] = None) -> List[Candle]:
        """
        Cerrar buckets vencidos según el reloj de pared.

        Tras cerrar, abre un bucket heartbeat que arranca en el close
        previo; si no llega ningún tick antes de su fin, saldrá sintético.
        """
        instruments = [instrument] if instrument is not None else list(self._building)
        current = self.align(now)
        closed: List[Candle] = []
        for inst in instruments:
            building = self._building.get(inst)
            if building is None or building.bucket_end > now:
                continue
            closed.extend(self._close(inst, current))
            self._building[inst] = self._open_heartbeat(inst, current, building.close)
        return closed

    def flush(self) -> List[Candle]:
        """
        Cerrar TODAS las velas abiertas (shutdown). Se marcan sintéticas
        porque su bucket no llegó a completarse.
        """
        closed: List[Candle] = []
        for inst, building in list(self._building.items()):
            candle = building.freeze(synthetic=True)
            closed.append(candle)
            self._closed_until[inst] = (building.bucket_end, building.close)
            self._synthetic_candles += 1
        self._building.clear()
        if closed:
            logger.info("Flush: %d velas parciales cerradas", len(closed))
        return closed

    # ════════════════════════════════════════════════════════════════════
    #  Consultas
    # ════════════════════════════════════════════════════════════════════

    def building_candle(self, instrument: str) -> Optional[dict]:
        """Vela en construcción (para preview en frontend)."""
        building = self._building.get(instrument)
        if building is None:
            return None
        data = building.freeze().to_dict()
        data["is_building"] = True
        return data

    def last_close(self, instrument: str) -> Optional[Decimal]:
        building = self._building.get(instrument)
        if building is not None:
            return building.close
        previous = self._closed_until.get(instrument)
        return previous[1] if previous else None

    @property
    def stats(self) -> dict:
        return {
            "interval": self._interval,
            "open_buckets": len(self._building),
            "skewed_ticks": self._skewed_ticks,
            "synthetic_candles": self._synthetic_candles,
            "skipped_buckets": self._skipped_buckets,
        }

    # ════════════════════════════════════════════════════════════════════
    #  Internos
    # ════════════════════════════════════════════════════════════════════

    def _open_from_tick(self, tick: Tick, bucket: float) -> _BuildingCandle:
        building = _BuildingCandle(
            instrument=tick.instrument,
            bucket_start=bucket,
            interval=self._interval,
            open=tick.price,
            high=tick.price,
            low=tick.price,
            close=tick.price,
        )
        building.update(tick)
        return building

    def _open_heartbeat(self, instrument: str, bucket: float, price: Decimal) -> _BuildingCandle:
        return _BuildingCandle(
            instrument=instrument,
            bucket_start=bucket,
            interval=self._interval,
            open=price,
            high=price,
            low=price,
            close=price,
        )

    def _close(self, instrument: str, next_bucket: float) -> List[Candle]:
        """Cerrar la vela abierta y rellenar hasta `next_bucket` (exclusivo)."""
        building = self._building.pop(instrument)
        candle = building.freeze()
        if candle.is_synthetic:
            self._synthetic_candles += 1

        logger.debug(
            "Vela cerrada: %s O=%s H=%s L=%s C=%s ticks=%d",
            candle.instrument,
            candle.open,
            candle.high,
            candle.low,
            candle.close,
            candle.tick_count,
        )

        closed = [candle]
        closed.extend(self._fill_gap(instrument, building.bucket_end, next_bucket, building.close))
        return closed

    def _fill_gap(
        self, instrument: str, start: float, end: float, price: Decimal
    ) -> List[Candle]:
        """Velas planas sintéticas para los buckets [start, end)."""
        missing = int(round((end - start) / self._interval))
        if missing <= 0:
            self._closed_until[instrument] = (max(start, end), price)
            return []

        if missing > self._max_backfill:
            skipped = missing - self._max_backfill
            self._skipped_buckets += skipped
            logger.warning(
                "Hueco de %d buckets en %s; solo se rellenan los últimos %d",
                missing,
                instrument,
                self._max_backfill,
            )
            start = end - self._max_backfill * self._interval
            missing = self._max_backfill

        filler = [
            self._open_heartbeat(instrument, start + i * self._interval, price).freeze()
            for i in range(missing)
        ]
        self._synthetic_candles += len(filler)
        self._closed_until[instrument] = (end, price)
        return filler

    def _count_skew(self, tick: Tick, bucket_start: float) -> None:
        self._skewed_ticks += 1
        logger.debug(
            "Tick atrasado en %s (ts=%.3f < bucket %.0f); acotado al bucket abierto",
            tick.instrument,
            tick.timestamp,
            bucket_start,
        )
