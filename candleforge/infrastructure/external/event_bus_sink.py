"""
CandleForge – Event Bus Candle Sink
=====================================
Reenvía cada vela cerrada al tópico "candle" del EventBus; de ahí la
consume el WebSocketManager para el broadcast a clientes.
"""

from __future__ import annotations

from candleforge.application.ports.event_publisher import IEventPublisher
from candleforge.domain.entities.candle import Candle
from candleforge.domain.repositories.candle_sink import ICandleSink

CANDLE_TOPIC = "candle"


class EventBusCandleSink(ICandleSink):
    def __init__(self, publisher: IEventPublisher, topic: str = CANDLE_TOPIC) -> None:
        self._publisher = publisher
        self._topic = topic

    async def on_candle_closed(self, candle: Candle) -> None:
        await self._publisher.publish(self._topic, candle)
