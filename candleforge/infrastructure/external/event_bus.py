"""
CandleForge – Event Bus (asyncio.Queue fan-out)
=================================================
Bus de eventos interno que desacopla la publicación de velas/snapshots de
los consumidores lentos (broadcast WebSocket, futuros listeners).

Arquitectura:
  ┌─────────────┐          ┌───────────┐
  │ Snapshotter │─candle──▸│ Event Bus │──▸ WebSocketManager (candle)
  │             │─snapshot▸│ (fan-out) │──▸ WebSocketManager (snapshot)
  └─────────────┘          └───────────┘──▸ Consumer N ...

CONTRAPRESIÓN:
- Cada consumidor tiene su propia asyncio.Queue acotada.
- Cola llena → se descarta el evento MÁS ANTIGUO de esa cola (drop-oldest);
  el productor (el motor de velas) nunca se bloquea por un cliente lento.
- Los descartes se cuentan por consumidor para monitoreo.

THREAD-SAFETY:
- asyncio.Queue es segura dentro del mismo event loop, que es nuestro caso.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict

from candleforge.application.ports.event_publisher import IEventPublisher
from candleforge.shared.logging.logger import get_logger

logger = get_logger("event_bus")


class EventBus(IEventPublisher):
    """Fan-out event bus basado en asyncio.Queue."""

    def __init__(self, max_queue_size: int = 10_000) -> None:
        self._max_queue_size = max_queue_size
        # topic → lista de (queue, nombre_consumidor)
        self._subscribers: Dict[str, list[tuple[asyncio.Queue, str]]] = {}
        self._dropped: Dict[str, int] = {}
        self._published: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, consumer_name: str) -> asyncio.Queue:
        """
        Registrar un consumidor en un tópico.
        Retorna la Queue exclusiva de ese consumidor.
        """
        async with self._lock:
            queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
            self._subscribers.setdefault(topic, []).append((queue, consumer_name))
            logger.info(
                "Consumidor '%s' suscrito a '%s' (max_queue=%d)",
                consumer_name,
                topic,
                self._max_queue_size,
            )
            return queue

    async def publish(self, topic: str, data: Any) -> None:
        """Entregar a todos los suscriptores con política drop-oldest."""
        self._published[topic] = self._published.get(topic, 0) + 1
        for queue, consumer_name in self._subscribers.get(topic, []):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                else:
                    self._dropped[consumer_name] = self._dropped.get(consumer_name, 0) + 1
                    logger.warning(
                        "Cola llena para '%s' en '%s' – evento antiguo descartado",
                        consumer_name,
                        topic,
                    )
            queue.put_nowait(data)

    async def unsubscribe_all(self, topic: str | None = None) -> None:
        """Desuscribir consumidores (cleanup al shutdown)."""
        async with self._lock:
            if topic:
                self._subscribers.pop(topic, None)
                logger.info("Suscriptores del tópico '%s' eliminados", topic)
            else:
                self._subscribers.clear()
                logger.info("Todos los suscriptores eliminados (shutdown)")

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def stats(self) -> dict:
        return {
            "subscribers": self.subscriber_count,
            "published": dict(self._published),
            "dropped": dict(self._dropped),
        }
