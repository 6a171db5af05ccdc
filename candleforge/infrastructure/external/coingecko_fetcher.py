"""
CandleForge – CoinGecko Quote Fetcher
=======================================
Cliente REST (aiohttp) del endpoint `simple/price` de CoinGecko.

- Autenticación con cabecera `x-cg-demo-api-key`.
- Mapeo instrumento → coin id (COINGECKO_IDS). Un instrumento sin mapeo o
  sin API key es "no configurado" y lo atiende el fallback random walk.
- Cualquier respuesta no-200 o payload sin precio → UpstreamUnavailableError
  para ESE instrumento; el poller lo registra y sigue con el resto.
"""

from __future__ import annotations

import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

import aiohttp

from candleforge.domain.exceptions.domain_errors import UpstreamUnavailableError
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.config.instruments import COINGECKO_IDS
from candleforge.shared.logging.logger import get_logger

logger = get_logger("coingecko")

SOURCE_NAME = "coingecko"


def parse_simple_price(
    instrument: str, coin_id: str, payload: Any, received_at: float
) -> Tick:
    """
    Payload de `simple/price` → Tick.

    Se usa la hora de recepción como timestamp: las velas se agregan por
    reloj de pared y `last_updated_at` puede ir minutos por detrás.
    """
    entry = payload.get(coin_id) if isinstance(payload, dict) else None
    if not isinstance(entry, dict) or entry.get("usd") is None:
        raise UpstreamUnavailableError(
            f"Respuesta sin precio para {coin_id}", instrument=instrument
        )
    try:
        price = Decimal(str(entry["usd"]))
    except InvalidOperation:
        raise UpstreamUnavailableError(
            f"Precio no numérico para {coin_id}: {entry['usd']!r}", instrument=instrument
        )
    if price <= 0:
        raise UpstreamUnavailableError(
            f"Precio no positivo para {coin_id}: {price}", instrument=instrument
        )
    return Tick(
        instrument=instrument,
        price=price,
        volume=Decimal(0),
        timestamp=received_at,
        source=SOURCE_NAME,
    )


class CoinGeckoQuoteFetcher:
    """Fetcher por instrumento con sesión aiohttp compartida."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.coingecko.com/api/v3",
        coin_ids: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._coin_ids = dict(COINGECKO_IDS if coin_ids is None else coin_ids)
        self._clock = clock
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def supports(self, instrument: str) -> bool:
        return self.is_configured and instrument in self._coin_ids

    async def open(self) -> None:
        if self._session is None and self.is_configured:
            self._session = aiohttp.ClientSession(
                headers={
                    "accept": "application/json",
                    "x-cg-demo-api-key": self._api_key,
                }
            )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, instrument: str) -> Tick:
        coin_id = self._coin_ids.get(instrument)
        if coin_id is None or self._session is None:
            raise UpstreamUnavailableError(
                f"{instrument} no configurado en CoinGecko", instrument=instrument
            )

        url = f"{self._base_url}/simple/price"
        params = {"ids": coin_id, "vs_currencies": "usd"}
        try:
            async with self._session.get(url, params=params) as response:
                if response.status != 200:
                    raise UpstreamUnavailableError(
                        f"CoinGecko HTTP {response.status} para {instrument}",
                        instrument=instrument,
                    )
                payload = await response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"JSON inválido de CoinGecko para {instrument}: {e}", instrument=instrument
            ) from e
        except aiohttp.ClientError as e:
            raise UpstreamUnavailableError(
                f"Error de red consultando {instrument}: {e}", instrument=instrument
            ) from e

        return parse_simple_price(instrument, coin_id, payload, self._clock())
