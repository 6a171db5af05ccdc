"""
CandleForge – Application Port: Event Publisher
=================================================
Interfaz para publicar eventos hacia consumidores desacoplados.

El Snapshotter y los sinks publican; la infraestructura decide CÓMO
entregar (EventBus en memoria → WebSocket, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IEventPublisher(ABC):
    """
    Interfaz para publicar eventos del sistema.

    IMPLEMENTACIONES:
    - EventBus (asyncio.Queue fan-out en memoria)
    """

    @abstractmethod
    async def publish(self, topic: str, data: Any) -> None:
        """
        Publica un evento a un tópico. NUNCA debe bloquear al productor.

        Args:
            topic: Nombre del tópico (e.g. "candle", "snapshot")
            data: Payload del evento
        """
        pass
