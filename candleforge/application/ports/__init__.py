"""Puertos (interfaces) que la infraestructura implementa."""
from candleforge.application.ports.event_publisher import IEventPublisher
from candleforge.application.ports.tick_source import ITickSource, TickCallback, TickSourceHandle

__all__ = ["IEventPublisher", "ITickSource", "TickCallback", "TickSourceHandle"]
