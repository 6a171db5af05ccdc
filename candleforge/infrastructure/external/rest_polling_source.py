"""
CandleForge – REST Polling Tick Source
========================================
Polling periódico de un upstream REST (CoinGecko) para todos los
instrumentos configurados.

CICLO:
  1. Fetch CONCURRENTE de los instrumentos configurados (asyncio.gather),
     cada uno acotado con asyncio.wait_for(timeout).
  2. Un instrumento que falla o expira se registra y se omite en ese ciclo;
     su último precio conocido se conserva.
  3. Instrumentos sin upstream (sin API key / sin mapeo) reciben un tick
     del random walk sembrado con el último precio conocido. Se avisa UNA
     sola vez por instrumento.
  4. Los ticks se entregan al callback en el orden de los instrumentos.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal
from typing import Callable, Dict, Optional, Protocol, Sequence

from candleforge.application.ports.tick_source import (
    ITickSource,
    TickCallback,
    TickSourceHandle,
)
from candleforge.domain.exceptions.domain_errors import (
    UpstreamUnavailableError,
    UpstreamUnconfiguredError,
)
from candleforge.domain.services.random_walk import RandomWalkGenerator
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.logging.logger import get_logger

logger = get_logger("rest_poller")

FALLBACK_SOURCE = "random_walk"


class QuoteFetcher(Protocol):
    def supports(self, instrument: str) -> bool: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def fetch(self, instrument: str) -> Tick: ...


class RestPollingTickSource(ITickSource):
    def __init__(
        self,
        instruments: Sequence[str],
        fetcher: Optional[QuoteFetcher],
        fallback: RandomWalkGenerator,
        poll_interval: float = 10.0,
        fetch_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._instruments = list(instruments)
        self._fetcher = fetcher
        self._fallback = fallback
        self._poll_interval = poll_interval
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self._last_prices: Dict[str, Decimal] = {}
        self._warned_unconfigured: set[str] = set()

        self._cycles = 0
        self._failures: Dict[str, int] = {}
        self._fallback_ticks = 0

    def is_configured(self, instrument: str) -> bool:
        return self._fetcher is not None and self._fetcher.supports(instrument)

    # ──────────────────────── Lifecycle ──────────────────────────────────

    async def start(self, on_tick: TickCallback) -> TickSourceHandle:
        if self._fetcher is not None:
            await self._fetcher.open()
        task = asyncio.create_task(self._poll_loop(on_tick), name="rest-poll-loop")
        logger.info(
            "Polling REST iniciado: %d instrumentos cada %.1fs (timeout %.1fs)",
            len(self._instruments),
            self._poll_interval,
            self._fetch_timeout,
        )
        return TickSourceHandle(name="rest_poller", tasks=[task])

    async def stop(self, handle: TickSourceHandle) -> None:
        await handle.cancel()
        if self._fetcher is not None:
            await self._fetcher.close()
        logger.info("Polling REST detenido tras %d ciclos", self._cycles)

    async def _poll_loop(self, on_tick: TickCallback) -> None:
        try:
            while True:
                started = self._clock()
                try:
                    await self.poll_once(on_tick)
                except Exception as exc:
                    logger.error("Error en ciclo de polling: %s", exc, exc_info=True)
                elapsed = self._clock() - started
                await asyncio.sleep(max(0.0, self._poll_interval - elapsed))
        except asyncio.CancelledError:
            logger.info("Loop de polling cancelado")
            raise

    # ──────────────────────── Ciclo ──────────────────────────────────────

    async def poll_once(self, on_tick: TickCallback) -> list[Tick]:
        """Un ciclo completo de polling. Retorna los ticks emitidos."""
        self._cycles += 1
        configured = [i for i in self._instruments if self.is_configured(i)]
        fetched: list[Optional[Tick]] = []
        if self._fetcher is not None:
            fetched = await asyncio.gather(
                *(self._fetch_one(self._fetcher, i) for i in configured)
            )
        by_instrument = {tick.instrument: tick for tick in fetched if tick is not None}

        ticks: list[Tick] = []
        for instrument in self._instruments:
            if instrument in by_instrument:
                ticks.append(by_instrument[instrument])
            elif instrument not in configured:
                ticks.append(self._fallback_tick(instrument))

        for tick in ticks:
            self._last_prices[tick.instrument] = tick.price
            await on_tick(tick)
        return ticks

    async def _fetch_one(self, fetcher: QuoteFetcher, instrument: str) -> Optional[Tick]:
        """Fetch acotado de UN instrumento; cualquier fallo se queda en él."""
        try:
            return await asyncio.wait_for(fetcher.fetch(instrument), self._fetch_timeout)
        except asyncio.TimeoutError:
            self._record_failure(
                UpstreamUnavailableError(
                    f"Timeout ({self._fetch_timeout:.1f}s) consultando {instrument}",
                    instrument=instrument,
                )
            )
        except UpstreamUnavailableError as exc:
            self._record_failure(exc)
        except Exception as exc:
            logger.debug("Error inesperado consultando %s", instrument, exc_info=True)
            self._record_failure(
                UpstreamUnavailableError(
                    f"Respuesta inválida para {instrument}: {exc!r}", instrument=instrument
                )
            )
        return None

    def _record_failure(self, exc: UpstreamUnavailableError) -> None:
        self._failures[exc.instrument] = self._failures.get(exc.instrument, 0) + 1
        logger.warning("Upstream no disponible: %s", exc.message)

    def _fallback_tick(self, instrument: str) -> Tick:
        if instrument not in self._warned_unconfigured:
            self._warned_unconfigured.add(instrument)
            error = UpstreamUnconfiguredError(
                f"{instrument} sin upstream configurado; usando random walk",
                instrument=instrument,
            )
            logger.warning(error.message)

        price = self._fallback.next_price(instrument, self._last_prices.get(instrument))
        self._fallback_ticks += 1
        return Tick(
            instrument=instrument,
            price=price,
            volume=Decimal(0),
            timestamp=self._clock(),
            source=FALLBACK_SOURCE,
        )

    @property
    def stats(self) -> dict:
        return {
            "cycles": self._cycles,
            "failures": dict(self._failures),
            "fallback_instruments": sorted(self._warned_unconfigured),
            "fallback_ticks": self._fallback_ticks,
            "last_prices": {k: float(v) for k, v in self._last_prices.items()},
        }
