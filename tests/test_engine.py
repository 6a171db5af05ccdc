"""
Tests for MarketEngine and the per-tick pipeline, wired with in-memory fakes.
"""

import asyncio
import random
from datetime import time, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from candleforge.application.services.candle_synthesizer import CandleSynthesizer
from candleforge.application.services.intervention_journal import InterventionJournal
from candleforge.application.services.intervention_store import InterventionStore
from candleforge.application.services.market_engine import MarketEngine
from candleforge.application.services.snapshotter import SNAPSHOT_TOPIC, Snapshotter
from candleforge.application.use_cases.process_tick_usecase import ProcessTickUseCase
from candleforge.domain.exceptions.domain_errors import ConfigurationError
from candleforge.domain.services.intervention_resolver import InterventionResolver
from candleforge.domain.services.price_override import PriceOverrideFunction
from candleforge.infrastructure.rules.memory_rule_source import InMemoryRuleSource
from tests.conftest import (
    FakeTickSource,
    RecordingPublisher,
    RecordingSink,
    assert_ohlc_invariant,
    utc_ts,
)

INSTRUMENTS = ["BTC/USDT", "ETH/USDT"]


class Harness:
    """Motor completo con fuente falsa, reglas en memoria y sink grabador."""

    def __init__(self, clock, rules=(), instruments=INSTRUMENTS, noise=0.001):
        self.source = FakeTickSource()
        self.sink = RecordingSink()
        self.publisher = RecordingPublisher()
        self.rule_source = InMemoryRuleSource(rules)
        self.store = InterventionStore(self.rule_source, clock=clock)
        self.synthesizer = CandleSynthesizer(interval=60)
        self.snapshotter = Snapshotter(
            sinks=[self.sink], event_publisher=self.publisher, clock=clock
        )
        self.journal = InterventionJournal()
        self.process = ProcessTickUseCase(
            store=self.store,
            resolver=InterventionResolver(),
            override_fn=PriceOverrideFunction(noise_max_pct=noise, rng=random.Random(7)),
            synthesizer=self.synthesizer,
            snapshotter=self.snapshotter,
            journal=self.journal,
            instruments=instruments,
        )
        self.engine = MarketEngine(
            instruments=instruments,
            tick_source=self.source,
            store=self.store,
            process_tick=self.process,
            synthesizer=self.synthesizer,
            snapshotter=self.snapshotter,
            snapshot_interval=60,
            clock=clock,
        )


def test_start_without_instruments_is_fatal(clock):
    harness = Harness(clock, instruments=[])
    with pytest.raises(ConfigurationError):
        asyncio.run(harness.engine.start())


def test_intervened_tick_lands_in_band(clock, make_rule, make_tick):
    harness = Harness(clock, rules=[make_rule()])
    at = utc_ts(10, 30)

    async def run():
        await harness.store.refresh()
        await harness.engine.ingest(make_tick("70000", at))
        await harness.engine.ingest(make_tick("3000", at, instrument="ETH/USDT"))
        return await harness.engine.close_due_buckets(at + 61)

    closed = asyncio.run(run())

    btc = [c for c in closed if c.instrument == "BTC/USDT"]
    eth = [c for c in closed if c.instrument == "ETH/USDT"]
    assert len(btc) == 1 and len(eth) == 1
    assert Decimal("65434.5") <= btc[0].close <= Decimal("65565.5")
    assert btc[0].intervened
    assert eth[0].close == Decimal("3000")
    assert not eth[0].intervened
    for candle in closed:
        assert_ohlc_invariant(candle)

    [entry] = harness.journal.recent()
    assert entry.rule_id == 1
    assert entry.original_price == Decimal("70000")
    assert harness.process.stats == {"processed": 2, "intervened": 1, "dropped": 0}


def test_tick_outside_window_passes_through(clock, make_rule, make_tick):
    harness = Harness(clock, rules=[make_rule()])

    async def run():
        await harness.store.refresh()
        return await harness.process.execute(make_tick("70000", utc_ts(12, 0)))

    result = asyncio.run(run())

    assert result.override is None
    assert result.tick.price == Decimal("70000")
    assert not result.tick.intervened


def test_unknown_instrument_is_dropped(clock, make_tick):
    harness = Harness(clock)

    result = asyncio.run(harness.process.execute(make_tick("1", 0.0, instrument="FOO/USDT")))

    assert result is None
    assert harness.process.stats["dropped"] == 1
    assert harness.synthesizer.stats["open_buckets"] == 0


def test_ingest_contains_processing_errors(clock, make_tick):
    process = MagicMock()
    process.execute = AsyncMock(side_effect=RuntimeError("boom"))
    engine = MarketEngine(
        instruments=INSTRUMENTS,
        tick_source=FakeTickSource(),
        store=MagicMock(),
        process_tick=process,
        synthesizer=CandleSynthesizer(),
        snapshotter=Snapshotter(),
        clock=clock,
    )

    async def run():
        await engine.ingest(make_tick())
        await engine.ingest(make_tick())

    asyncio.run(run())

    assert engine.stats["tick_errors"] == 2
    assert process.execute.await_count == 2


def test_rule_with_zoned_time_is_ignored_by_ingest(clock, make_rule, make_tick):
    harness = Harness(clock, rules=[make_rule(start=time(10, 0, tzinfo=timezone.utc))])
    at = utc_ts(10, 30)

    async def run():
        await harness.store.refresh()
        await harness.engine.ingest(make_tick("70000", at))

    asyncio.run(run())

    assert harness.engine.stats["tick_errors"] == 0
    assert harness.synthesizer.building_candle("BTC/USDT") is not None
    assert harness.process.stats["intervened"] == 0


def test_clock_closes_buckets_without_ticks(clock, make_tick):
    harness = Harness(clock)
    t0 = utc_ts(10, 0)

    async def run():
        await harness.engine.ingest(make_tick("100", t0 + 5))
        return await harness.engine.close_due_buckets(t0 + 185)

    closed = asyncio.run(run())

    assert [c.bucket_start for c in closed] == [t0, t0 + 60, t0 + 120]
    assert [c.is_synthetic for c in closed] == [False, True, True]
    assert [c.bucket_start for c in harness.sink.candles] == [t0, t0 + 60, t0 + 120]


def test_start_and_stop_lifecycle(clock, make_tick):
    harness = Harness(clock)
    t0 = utc_ts(10, 0)

    async def run():
        await harness.engine.start()
        assert harness.source.started
        assert harness.engine.running
        await harness.source.on_tick(make_tick("100", t0 + 1))
        await harness.source.on_tick(make_tick("101", t0 + 2))
        await harness.engine.stop()

    asyncio.run(run())

    assert harness.source.stopped
    assert not harness.engine.running
    assert harness.store.rule_set.version == 1
    [candle] = harness.sink.candles
    assert candle.is_synthetic
    assert candle.tick_count == 2
    assert candle.close == Decimal("101")
    assert harness.publisher.topics()[-1] == SNAPSHOT_TOPIC
    assert harness.snapshotter.current_snapshot().latest_price("BTC/USDT") == 101.0
