"""
CandleForge – WebSocket Manager (broadcast a clientes frontend)
=================================================================
Gestiona conexiones WebSocket y les envía velas cerradas y snapshots.

ARQUITECTURA:
  EventBus ──(candle)────▸ WSManager._broadcast_loop()
  EventBus ──(snapshot)──▸ WSManager._broadcast_loop()
       │
       ▼
  [Cliente WS 1, Cliente WS 2, ...]

NO BLOQUEA EL MOTOR:
- El broadcast corre en tasks independientes que leen de su propia cola
  del EventBus (drop-oldest si un cliente va lento).
- El envío a cada cliente usa asyncio.wait_for con timeout; un cliente
  que falla o expira se elimina sin afectar a los demás.

SNAPSHOT:
- Se difunde un resumen (versión + último precio por instrumento), no el
  buffer completo de velas; el histórico se pide por REST.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Set

from fastapi import WebSocket, WebSocketDisconnect

from candleforge.domain.value_objects.snapshot import MarketSnapshot
from candleforge.infrastructure.external.event_bus import EventBus
from candleforge.infrastructure.external.event_bus_sink import CANDLE_TOPIC
from candleforge.application.services.snapshotter import SNAPSHOT_TOPIC
from candleforge.shared.logging.logger import get_logger

logger = get_logger("ws_manager")

SEND_TIMEOUT_SECONDS = 5.0


def snapshot_summary(snapshot: MarketSnapshot) -> dict:
    return {
        "version": snapshot.version,
        "taken_at": snapshot.taken_at,
        "prices": {
            inst: snapshot.latest_price(inst)
            for inst in sorted(set(snapshot.latest_ticks) | set(snapshot.candles))
        },
    }


def encode_event(event_type: str, data: Any) -> str:
    """Serializa un evento del bus al formato {"type", "data"} del frontend."""
    if isinstance(data, MarketSnapshot):
        payload_data = snapshot_summary(data)
    elif hasattr(data, "to_dict"):
        payload_data = data.to_dict()
    else:
        payload_data = data
    return json.dumps({"type": event_type, "data": payload_data})


class WebSocketManager:
    """Gestiona conexiones frontend y broadcast de datos en tiempo real."""

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._clients: Set[WebSocket] = set()
        self._broadcast_tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Lanzar loops de broadcast para los tópicos publicados."""
        candle_queue = await self._event_bus.subscribe(CANDLE_TOPIC, "ws_broadcast_candle")
        snapshot_queue = await self._event_bus.subscribe(SNAPSHOT_TOPIC, "ws_broadcast_snapshot")
        self._broadcast_tasks = [
            asyncio.create_task(
                self._broadcast_loop(candle_queue, "candle"), name="ws-broadcast-candle"
            ),
            asyncio.create_task(
                self._broadcast_loop(snapshot_queue, "snapshot"), name="ws-broadcast-snapshot"
            ),
        ]
        logger.info("WebSocketManager iniciado – broadcast de candle y snapshot")

    async def stop(self) -> None:
        """Cancelar broadcast y cerrar todos los clientes."""
        for task in self._broadcast_tasks:
            task.cancel()
        await asyncio.gather(*self._broadcast_tasks, return_exceptions=True)
        self._broadcast_tasks.clear()

        for ws in list(self._clients):
            try:
                await ws.close()
            except (RuntimeError, OSError) as exc:
                logger.debug("Cliente WS ya cerrado: %s", exc)
        self._clients.clear()
        logger.info("WebSocketManager detenido")

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Cliente WS conectado. Total: %d", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Cliente WS desconectado. Total: %d", len(self._clients))

    async def broadcast(self, payload: str) -> int:
        """Enviar a todos los clientes en paralelo. Retorna los que fallaron."""
        disconnected: list[WebSocket] = []
        await asyncio.gather(
            *(self._safe_send(ws, payload, disconnected) for ws in list(self._clients))
        )
        for ws in disconnected:
            self._clients.discard(ws)
        return len(disconnected)

    async def _broadcast_loop(self, queue: asyncio.Queue, event_type: str) -> None:
        try:
            while True:
                data = await queue.get()
                if not self._clients:
                    continue
                await self.broadcast(encode_event(event_type, data))
        except asyncio.CancelledError:
            logger.debug("Loop de broadcast '%s' cancelado", event_type)
            raise

    async def _safe_send(
        self, ws: WebSocket, payload: str, disconnected: list[WebSocket]
    ) -> None:
        """Enviar con timeout; si falla, marcar el cliente para limpieza."""
        try:
            await asyncio.wait_for(ws.send_text(payload), timeout=SEND_TIMEOUT_SECONDS)
        except (WebSocketDisconnect, asyncio.TimeoutError, RuntimeError, OSError):
            disconnected.append(ws)

    @property
    def client_count(self) -> int:
        return len(self._clients)
