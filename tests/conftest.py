"""
Shared test fixtures: rule/tick factories, fixed clock and fakes.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

import pytest

from candleforge.application.ports.tick_source import ITickSource, TickSourceHandle
from candleforge.domain.entities.candle import Candle
from candleforge.domain.entities.intervention_rule import InterventionRule, Trend
from candleforge.domain.repositories.candle_sink import ICandleSink
from candleforge.domain.value_objects.tick import Tick

DAY = date(2024, 1, 1)  # lunes


def utc_ts(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> float:
    """Epoch para una hora UTC del día dado."""
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc).timestamp()


def _parse_time(value) -> time:
    if isinstance(value, time):
        return value
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


@pytest.fixture
def make_rule():
    def factory(
        rule_id: int = 1,
        instrument: str = "BTC/USDT",
        start="10:00",
        end="11:00",
        min_price="65000",
        max_price="66000",
        trend: Trend = Trend.UP,
        priority: int = 1,
        **extra,
    ) -> InterventionRule:
        return InterventionRule(
            id=rule_id,
            instrument=instrument,
            start_time=_parse_time(start),
            end_time=_parse_time(end),
            min_price=Decimal(min_price),
            max_price=Decimal(max_price),
            trend=trend,
            priority=priority,
            **extra,
        )

    return factory


@pytest.fixture
def make_tick():
    def factory(
        price="100",
        timestamp: float = 0.0,
        instrument: str = "BTC/USDT",
        volume="1",
    ) -> Tick:
        return Tick(
            instrument=instrument,
            price=Decimal(str(price)),
            volume=Decimal(str(volume)),
            timestamp=timestamp,
        )

    return factory


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(utc_ts(10, 0))


class RecordingSink(ICandleSink):
    def __init__(self) -> None:
        self.candles: list[Candle] = []

    async def on_candle_closed(self, candle: Candle) -> None:
        self.candles.append(candle)


class FailingSink(ICandleSink):
    def __init__(self) -> None:
        self.calls = 0

    async def on_candle_closed(self, candle: Candle) -> None:
        self.calls += 1
        raise RuntimeError("sink caído")


class FakeTickSource(ITickSource):
    """Guarda el callback; los tests emiten ticks a mano."""

    def __init__(self) -> None:
        self.on_tick = None
        self.started = False
        self.stopped = False

    async def start(self, on_tick) -> TickSourceHandle:
        self.on_tick = on_tick
        self.started = True
        return TickSourceHandle(name="fake")

    async def stop(self, handle: TickSourceHandle) -> None:
        self.stopped = True
        await handle.cancel()


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    async def publish(self, topic: str, data) -> None:
        self.events.append((topic, data))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]


def candle_at(bucket_start: float, price: str = "100", instrument: str = "BTC/USDT",
              synthetic: bool = False, interval: int = 60) -> Candle:
    p = Decimal(price)
    return Candle(
        instrument=instrument,
        bucket_start=bucket_start,
        open=p,
        high=p,
        low=p,
        close=p,
        volume=Decimal(0),
        is_synthetic=synthetic,
        interval=interval,
    )


def assert_ohlc_invariant(candle: Candle, note: Optional[str] = None) -> None:
    assert candle.low <= min(candle.open, candle.close), note or candle
    assert candle.high >= max(candle.open, candle.close), note or candle
    assert candle.low <= candle.high, note or candle
