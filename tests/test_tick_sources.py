"""
Tests for tick source adapters: message parsing, REST polling with fallback,
synthetic emission and reconnect backoff.
"""

import asyncio
import json
import logging
from decimal import Decimal

import pytest

from candleforge.domain.exceptions.domain_errors import UpstreamUnavailableError
from candleforge.domain.services.random_walk import RandomWalkGenerator
from candleforge.domain.value_objects.tick import Tick
from candleforge.infrastructure.external.binance_stream_source import (
    BinanceStreamTickSource,
    parse_trade_message,
)
from candleforge.infrastructure.external.coingecko_fetcher import (
    CoinGeckoQuoteFetcher,
    parse_simple_price,
)
from candleforge.infrastructure.external.rest_polling_source import RestPollingTickSource
from candleforge.infrastructure.external.synthetic_source import SyntheticTickSource

SYMBOLS = {"btcusdt": "BTC/USDT", "ethusdt": "ETH/USDT"}


class TestParseTradeMessage:
    def test_combined_stream_trade(self):
        raw = json.dumps({
            "stream": "btcusdt@trade",
            "data": {"e": "trade", "s": "BTCUSDT", "p": "65500.10", "q": "0.25", "T": 1700000000123},
        })

        tick = parse_trade_message(raw, SYMBOLS)

        assert tick.instrument == "BTC/USDT"
        assert tick.price == Decimal("65500.10")
        assert tick.volume == Decimal("0.25")
        assert tick.timestamp == pytest.approx(1700000000.123)
        assert tick.source == "binance"

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            json.dumps({"result": None, "id": 1}),
            json.dumps({"e": "kline", "s": "BTCUSDT"}),
            json.dumps({"e": "trade", "s": "DOGEUSDT", "p": "0.1", "T": 1}),
            json.dumps({"e": "trade", "s": "BTCUSDT", "p": "0", "T": 1}),
            json.dumps({"e": "trade", "s": "BTCUSDT", "p": "abc", "T": 1}),
            json.dumps([1, 2, 3]),
        ],
    )
    def test_ignored_messages(self, raw):
        assert parse_trade_message(raw, SYMBOLS) is None


class TestParseSimplePrice:
    def test_valid_payload(self):
        tick = parse_simple_price("BTC/USDT", "bitcoin", {"bitcoin": {"usd": 65000.5}}, 123.0)
        assert tick.price == Decimal("65000.5")
        assert tick.volume == 0
        assert tick.timestamp == 123.0
        assert tick.source == "coingecko"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"bitcoin": {}}, {"bitcoin": {"usd": "n/a"}}, {"bitcoin": {"usd": -1}}, []],
    )
    def test_invalid_payload_raises(self, payload):
        with pytest.raises(UpstreamUnavailableError) as exc:
            parse_simple_price("BTC/USDT", "bitcoin", payload, 0.0)
        assert exc.value.instrument == "BTC/USDT"


def test_coingecko_fetcher_configuration():
    assert not CoinGeckoQuoteFetcher("").is_configured
    fetcher = CoinGeckoQuoteFetcher("demo-key")
    assert fetcher.supports("BTC/USDT")
    assert not fetcher.supports("FOO/USDT")


class FakeFetcher:
    """Precios fijos; instrumentos en `failing` lanzan, en `slow` no responden."""

    def __init__(self, prices, failing=(), slow=(), errors=None):
        self.prices = prices
        self.failing = set(failing)
        self.slow = set(slow)
        self.errors = dict(errors or {})
        self.opened = False
        self.closed = False

    def supports(self, instrument):
        return instrument in self.prices

    async def open(self):
        self.opened = True

    async def close(self):
        self.closed = True

    async def fetch(self, instrument):
        if instrument in self.slow:
            await asyncio.sleep(10)
        if instrument in self.failing:
            raise UpstreamUnavailableError("HTTP 500", instrument=instrument)
        if instrument in self.errors:
            raise self.errors[instrument]
        return Tick(instrument=instrument, price=Decimal(self.prices[instrument]),
                    volume=Decimal(0), timestamp=1.0, source="coingecko")


class TestRestPollingTickSource:
    def _poll(self, source):
        emitted = []

        async def on_tick(tick):
            emitted.append(tick)

        returned = asyncio.run(source.poll_once(on_tick))
        assert returned == emitted
        return emitted

    def test_one_failure_does_not_abort_the_cycle(self, clock):
        fetcher = FakeFetcher({"BTC/USDT": "65000", "ETH/USDT": "3000"}, failing={"BTC/USDT"})
        source = RestPollingTickSource(
            ["BTC/USDT", "ETH/USDT"], fetcher, RandomWalkGenerator(seed=1), clock=clock
        )

        ticks = self._poll(source)

        assert [t.instrument for t in ticks] == ["ETH/USDT"]
        assert source.stats["failures"] == {"BTC/USDT": 1}

    def test_timeout_is_a_per_instrument_failure(self, clock):
        fetcher = FakeFetcher({"BTC/USDT": "65000", "ETH/USDT": "3000"}, slow={"ETH/USDT"})
        source = RestPollingTickSource(
            ["BTC/USDT", "ETH/USDT"], fetcher, RandomWalkGenerator(seed=1),
            fetch_timeout=0.05, clock=clock,
        )

        ticks = self._poll(source)

        assert [t.instrument for t in ticks] == ["BTC/USDT"]
        assert source.stats["failures"] == {"ETH/USDT": 1}

    def test_unexpected_error_is_a_per_instrument_failure(self, clock):
        fetcher = FakeFetcher(
            {"BTC/USDT": "65000", "ETH/USDT": "3000"},
            errors={"BTC/USDT": ValueError("Expecting value: line 1 column 1 (char 0)")},
        )
        source = RestPollingTickSource(
            ["BTC/USDT", "ETH/USDT"], fetcher, RandomWalkGenerator(seed=1), clock=clock
        )

        ticks = self._poll(source)

        assert [t.instrument for t in ticks] == ["ETH/USDT"]
        assert source.stats["failures"] == {"BTC/USDT": 1}

    def test_unconfigured_instrument_uses_random_walk(self, clock, caplog):
        fetcher = FakeFetcher({"BTC/USDT": "65000"})
        source = RestPollingTickSource(
            ["BTC/USDT", "FOO/USDT"], fetcher, RandomWalkGenerator(seed=1), clock=clock
        )

        with caplog.at_level(logging.WARNING):
            first = self._poll(source)
            second = self._poll(source)

        assert [t.instrument for t in first] == ["BTC/USDT", "FOO/USDT"]
        assert first[1].source == "random_walk"
        assert first[1].timestamp == clock.now
        assert all(t.price > 0 for t in first + second)
        warnings = [r for r in caplog.records if "FOO/USDT sin upstream" in r.getMessage()]
        assert len(warnings) == 1
        assert source.stats["fallback_instruments"] == ["FOO/USDT"]
        assert source.stats["fallback_ticks"] == 2

    def test_without_fetcher_everything_falls_back(self, clock):
        source = RestPollingTickSource(["BTC/USDT"], None, RandomWalkGenerator(seed=1), clock=clock)
        ticks = self._poll(source)
        assert ticks[0].source == "random_walk"

    def test_start_and_stop_manage_fetcher_session(self, clock):
        fetcher = FakeFetcher({"BTC/USDT": "65000"})
        source = RestPollingTickSource(
            ["BTC/USDT"], fetcher, RandomWalkGenerator(seed=1), poll_interval=60, clock=clock
        )
        received = []

        async def on_tick(tick):
            received.append(tick)

        async def run():
            handle = await source.start(on_tick)
            await asyncio.sleep(0.01)
            assert handle.active
            await source.stop(handle)
            assert not handle.active

        asyncio.run(run())

        assert fetcher.opened and fetcher.closed
        assert [t.price for t in received] == [Decimal("65000")]


def test_synthetic_source_emits_one_tick_per_instrument(clock):
    source = SyntheticTickSource(["BTC/USDT", "ETH/USDT"], RandomWalkGenerator(seed=5), clock=clock)
    emitted = []

    async def on_tick(tick):
        emitted.append(tick)

    async def run():
        await source.emit_once(on_tick)
        await source.emit_once(on_tick)

    asyncio.run(run())

    assert [t.instrument for t in emitted] == ["BTC/USDT", "ETH/USDT"] * 2
    assert all(t.price > 0 and t.timestamp == clock.now for t in emitted)
    assert source.stats["ticks_emitted"] == 4


class TestBinanceStreamTickSource:
    def test_streams_from_instruments(self):
        source = BinanceStreamTickSource(["BTC/USDT", "ETH/USDT"])
        assert source.streams == ["btcusdt@trade", "ethusdt@trade"]

    @pytest.mark.parametrize("attempt, base", [(0, 1.0), (1, 2.0), (3, 8.0), (10, 60.0)])
    def test_backoff_is_capped_with_jitter(self, attempt, base):
        source = BinanceStreamTickSource(["BTC/USDT"], reconnect_base_delay=1.0, reconnect_max_delay=60.0)
        for _ in range(20):
            delay = source.backoff_delay(attempt)
            assert base <= delay <= base * 1.3
