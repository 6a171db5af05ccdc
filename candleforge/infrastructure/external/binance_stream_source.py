"""
CandleForge – Binance Trade Stream Source (WebSocket push)
============================================================
Suscripción persistente al stream combinado de trades de Binance; cada
trade se normaliza a Tick y se entrega al callback del motor.

SUSCRIPCIÓN:
- {"method": "SUBSCRIBE", "params": ["btcusdt@trade", ...], "id": 1}
- Mensajes combinados: {"stream": "btcusdt@trade", "data": {"e": "trade", ...}}

RECONEXIÓN AUTOMÁTICA CON BACKOFF EXPONENCIAL:
- Ante cualquier desconexión el cliente espera base * 2^intento (capped a
  max_delay) más un jitter aleatorio de hasta el 30%.
- El contador de intentos se resetea tras una conexión exitosa.
- Un flag `_running` permite shutdown limpio.

HEARTBEAT:
- Binance envía ping frames; websockets responde automáticamente y además
  mandamos nuestros propios pings cada 20s para detectar conexiones muertas.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Sequence

import websockets
from websockets.asyncio.client import ClientConnection

from candleforge.application.ports.tick_source import (
    ITickSource,
    TickCallback,
    TickSourceHandle,
)
from candleforge.domain.value_objects.tick import Tick
from candleforge.shared.config.instruments import to_stream_symbol
from candleforge.shared.logging.logger import get_logger

logger = get_logger("binance_stream")

SOURCE_NAME = "binance"


def parse_trade_message(raw: str | bytes, symbols: Mapping[str, str]) -> Optional[Tick]:
    """
    Mensaje crudo → Tick, o None si no es un trade de un instrumento conocido.

    Args:
        raw: Texto JSON recibido del socket
        symbols: Mapa símbolo de stream ('btcusdt') → instrumento ('BTC/USDT')
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Mensaje no-JSON recibido, ignorando")
        return None

    if not isinstance(data, dict):
        return None
    # Respuesta a SUBSCRIBE: {"result": null, "id": 1}
    if "id" in data and "result" in data:
        return None

    payload = data.get("data", data)
    if not isinstance(payload, dict) or payload.get("e") != "trade":
        return None

    instrument = symbols.get(str(payload.get("s", "")).lower())
    if instrument is None:
        return None

    try:
        price = Decimal(str(payload["p"]))
        volume = Decimal(str(payload.get("q", "0")))
        timestamp = float(payload.get("T") or payload.get("E")) / 1000.0
    except (KeyError, TypeError, ValueError, InvalidOperation):
        logger.warning("Trade malformado para %s, ignorando", instrument)
        return None

    if price <= 0:
        return None
    return Tick(
        instrument=instrument,
        price=price,
        volume=volume,
        timestamp=timestamp,
        source=SOURCE_NAME,
    )


class BinanceStreamTickSource(ITickSource):
    """
    Adaptador push sobre el stream combinado de Binance.

    Ciclo de vida:
      1. start()         → lanza task de conexión
      2. _connect_loop() → reconexión perpetua con backoff
      3. _listen()       → parsear mensajes y emitir ticks
      4. stop()          → shutdown limpio
    """

    def __init__(
        self,
        instruments: Sequence[str],
        ws_url: str = "wss://stream.binance.com:9443/stream",
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 60.0,
    ) -> None:
        self._symbols = {to_stream_symbol(inst): inst for inst in instruments}
        self._ws_url = ws_url
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._ws: Optional[ClientConnection] = None
        self._running = False
        self._reconnect_attempt = 0

        # Estadísticas de monitoreo
        self._ticks_received = 0
        self._last_tick_time = 0.0
        self._connected_since = 0.0

    @property
    def streams(self) -> list[str]:
        return [f"{symbol}@trade" for symbol in self._symbols]

    # ──────────────────────── Lifecycle ──────────────────────────────────

    async def start(self, on_tick: TickCallback) -> TickSourceHandle:
        self._running = True
        task = asyncio.create_task(self._connect_loop(on_tick), name="binance-connect-loop")
        logger.info("BinanceStreamTickSource iniciado (%d streams)", len(self._symbols))
        return TickSourceHandle(name="binance_stream", tasks=[task])

    async def stop(self, handle: TickSourceHandle) -> None:
        self._running = False
        logger.info("Deteniendo BinanceStreamTickSource...")
        if self._ws is not None:
            try:
                await self._ws.close()
            except websockets.exceptions.WebSocketException as exc:
                logger.debug("Error cerrando WebSocket: %s", exc)
        await handle.cancel()
        logger.info(
            "BinanceStreamTickSource detenido. Total ticks recibidos: %d",
            self._ticks_received,
        )

    # ──────────────────────── Connection Loop ───────────────────────────

    async def _connect_loop(self, on_tick: TickCallback) -> None:
        while self._running:
            try:
                logger.info("Conectando a Binance: %s", self._ws_url)
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=20,
                    ping_timeout=20,
                    close_timeout=10,
                    max_size=2**20,
                ) as ws:
                    self._ws = ws
                    self._reconnect_attempt = 0
                    self._connected_since = time.time()
                    logger.info("✓ Conectado a Binance WebSocket")

                    await self._subscribe(ws)
                    await self._listen(ws, on_tick)

            except websockets.exceptions.ConnectionClosed as e:
                logger.warning("Conexión cerrada: %s", e)
            except OSError as e:
                logger.error("Error de red: %s", e)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error inesperado en connect_loop: %s", e, exc_info=True)
            finally:
                self._ws = None

            if not self._running:
                break

            total_delay = self.backoff_delay(self._reconnect_attempt)
            self._reconnect_attempt += 1
            logger.info(
                "Reconectando en %.1fs (intento #%d)...",
                total_delay,
                self._reconnect_attempt,
            )
            await asyncio.sleep(total_delay)

    def backoff_delay(self, attempt: int) -> float:
        """Backoff exponencial con jitter de hasta el 30%."""
        delay = min(self._base_delay * (2 ** attempt), self._max_delay)
        return delay + random.uniform(0, delay * 0.3)

    async def _subscribe(self, ws: ClientConnection) -> None:
        msg = {"method": "SUBSCRIBE", "params": self.streams, "id": 1}
        await ws.send(json.dumps(msg))
        logger.info("Suscrito a %d trade streams", len(self.streams))

    async def _listen(self, ws: ClientConnection, on_tick: TickCallback) -> None:
        async for raw_msg in ws:
            if not self._running:
                break
            tick = parse_trade_message(raw_msg, self._symbols)
            if tick is None:
                continue
            self._ticks_received += 1
            self._last_tick_time = tick.timestamp
            await on_tick(tick)

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self._ws is not None,
            "ticks_received": self._ticks_received,
            "last_tick_time": self._last_tick_time,
            "connected_since": self._connected_since,
            "reconnect_attempts": self._reconnect_attempt,
        }
