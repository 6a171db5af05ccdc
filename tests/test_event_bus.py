"""
Tests for EventBus fan-out and drop-oldest backpressure.
"""

import asyncio

from candleforge.infrastructure.external.event_bus import EventBus


def test_every_subscriber_receives_events():
    async def run():
        bus = EventBus()
        a = await bus.subscribe("candle", "a")
        b = await bus.subscribe("candle", "b")
        await bus.publish("candle", 1)
        await bus.publish("snapshot", 2)
        return a, b, bus

    a, b, bus = asyncio.run(run())

    assert a.get_nowait() == 1
    assert b.get_nowait() == 1
    assert a.empty() and b.empty()
    assert bus.stats["published"] == {"candle": 1, "snapshot": 1}


def test_full_queue_drops_oldest():
    async def run():
        bus = EventBus(max_queue_size=2)
        queue = await bus.subscribe("candle", "slow")
        for i in range(5):
            await bus.publish("candle", i)
        return bus, [queue.get_nowait() for _ in range(queue.qsize())]

    bus, items = asyncio.run(run())

    assert items == [3, 4]
    assert bus.stats["dropped"] == {"slow": 3}


def test_unsubscribe_all():
    async def run():
        bus = EventBus()
        await bus.subscribe("candle", "a")
        await bus.subscribe("snapshot", "b")
        await bus.unsubscribe_all("candle")
        assert bus.subscriber_count == 1
        await bus.unsubscribe_all()
        return bus.subscriber_count

    assert asyncio.run(run()) == 0
