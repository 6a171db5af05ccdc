"""
Tests for CandleSynthesizer: OHLC invariant, gap filling, wall-clock closes.
"""

import random
from decimal import Decimal

import pytest

from candleforge.application.services.candle_synthesizer import CandleSynthesizer
from tests.conftest import assert_ohlc_invariant

T0 = 1_700_000_040.0  # alineado a 60s


@pytest.fixture
def synth():
    return CandleSynthesizer(interval=60, max_backfill_buckets=240)


class TestBucketing:
    def test_first_tick_opens_candle(self, synth, make_tick):
        assert synth.process_tick(make_tick("100", T0 + 5)) == []
        preview = synth.building_candle("BTC/USDT")
        assert preview["open"] == preview["high"] == preview["low"] == preview["close"] == 100.0
        assert preview["is_building"] is True

    def test_ticks_in_same_bucket_update_ohlcv(self, synth, make_tick):
        for price, offset in (("100", 1), ("105", 10), ("95", 20), ("101", 59)):
            assert synth.process_tick(make_tick(price, T0 + offset, volume="2")) == []

        closed = synth.process_tick(make_tick("102", T0 + 61))

        assert len(closed) == 1
        candle = closed[0]
        assert candle.bucket_start == T0
        assert (candle.open, candle.high, candle.low, candle.close) == (
            Decimal("100"), Decimal("105"), Decimal("95"), Decimal("101"),
        )
        assert candle.volume == Decimal("8")
        assert candle.tick_count == 4
        assert candle.is_synthetic is False

    def test_new_bucket_opens_at_tick_price(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0))
        synth.process_tick(make_tick("110", T0 + 60))
        assert synth.building_candle("BTC/USDT")["open"] == 110.0

    def test_instruments_are_independent(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0, instrument="BTC/USDT"))
        closed = synth.process_tick(make_tick("5", T0 + 90, instrument="ETH/USDT"))
        assert closed == []
        assert synth.building_candle("BTC/USDT")["bucket_start"] == T0


class TestGaps:
    def test_gap_filled_with_flat_synthetic_candles(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 1))
        synth.process_tick(make_tick("104", T0 + 30))

        closed = synth.process_tick(make_tick("90", T0 + 185))

        assert [c.bucket_start for c in closed] == [T0, T0 + 60, T0 + 120]
        real, *fillers = closed
        assert real.is_synthetic is False
        for candle in fillers:
            assert candle.is_synthetic is True
            assert candle.volume == 0
            assert candle.open == candle.high == candle.low == candle.close == Decimal("104")

    def test_backfill_is_bounded(self, make_tick):
        synth = CandleSynthesizer(interval=60, max_backfill_buckets=3)
        synth.process_tick(make_tick("100", T0))

        closed = synth.process_tick(make_tick("100", T0 + 600))

        assert [c.bucket_start for c in closed] == [T0, T0 + 420, T0 + 480, T0 + 540]
        assert synth.stats["skipped_buckets"] == 6

    def test_random_ticks_keep_invariant_and_no_gaps(self, synth, make_tick):
        rng = random.Random(7)
        closed = []
        ts = T0
        for _ in range(500):
            ts += rng.uniform(0, 45)
            price = Decimal(str(round(rng.uniform(90, 110), 2)))
            volume = Decimal(str(round(rng.uniform(0, 3), 3)))
            closed += synth.process_tick(make_tick(price, ts, volume=volume))
        closed += synth.flush()

        for candle in closed:
            assert_ohlc_invariant(candle)
        starts = [c.bucket_start for c in closed]
        assert all(b - a == 60 for a, b in zip(starts, starts[1:]))


class TestClockSkew:
    def test_late_tick_clamped_into_open_bucket(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 70))

        assert synth.process_tick(make_tick("80", T0 + 10)) == []
        closed = synth.process_tick(make_tick("101", T0 + 130))

        assert len(closed) == 1
        assert closed[0].bucket_start == T0 + 60
        assert closed[0].tick_count == 2
        assert closed[0].low == Decimal("80")
        assert synth.stats["skewed_ticks"] == 1

    def test_tick_before_closed_bucket_after_flush_does_not_reopen(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 70))
        synth.flush()

        synth.process_tick(make_tick("99", T0 + 5))

        assert synth.building_candle("BTC/USDT")["bucket_start"] == T0 + 120


class TestWallClock:
    def test_advance_closes_only_due_buckets(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 5))

        assert synth.advance(T0 + 59) == []
        closed = synth.advance(T0 + 61)

        assert [c.bucket_start for c in closed] == [T0]

    def test_heartbeat_candle_without_ticks_is_synthetic(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 5))
        synth.advance(T0 + 61)

        closed = synth.advance(T0 + 125)

        assert len(closed) == 1
        heartbeat = closed[0]
        assert heartbeat.bucket_start == T0 + 60
        assert heartbeat.is_synthetic is True
        assert heartbeat.volume == 0
        assert heartbeat.open == heartbeat.close == Decimal("100")

    def test_heartbeat_opens_at_previous_close(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 5))
        synth.advance(T0 + 61)
        synth.process_tick(make_tick("105", T0 + 62))

        candle = synth.advance(T0 + 121)[0]

        assert candle.is_synthetic is False
        assert candle.open == Decimal("100")
        assert candle.close == Decimal("105")
        assert candle.high == Decimal("105")
        assert candle.low == Decimal("100")

    def test_advance_fills_missed_buckets(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0 + 5))

        closed = synth.advance(T0 + 200)

        assert [c.bucket_start for c in closed] == [T0, T0 + 60, T0 + 120]
        assert synth.building_candle("BTC/USDT")["bucket_start"] == T0 + 180

    def test_advance_single_instrument(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0, instrument="BTC/USDT"))
        synth.process_tick(make_tick("5", T0, instrument="ETH/USDT"))

        closed = synth.advance(T0 + 61, instrument="ETH/USDT")

        assert [c.instrument for c in closed] == ["ETH/USDT"]


class TestFlush:
    def test_flush_closes_everything_as_synthetic(self, synth, make_tick):
        synth.process_tick(make_tick("100", T0, instrument="BTC/USDT"))
        synth.process_tick(make_tick("5", T0, instrument="ETH/USDT"))

        closed = synth.flush()

        assert {c.instrument for c in closed} == {"BTC/USDT", "ETH/USDT"}
        assert all(c.is_synthetic for c in closed)
        assert synth.building_candle("BTC/USDT") is None
        assert synth.last_close("BTC/USDT") == Decimal("100")


def test_intervened_flag_propagates(synth, make_tick):
    from dataclasses import replace

    synth.process_tick(make_tick("100", T0))
    synth.process_tick(replace(make_tick("101", T0 + 1), intervened=True))

    assert synth.flush()[0].intervened is True
