"""
Tests for PriceOverrideFunction: trend formulas, noise bound and clamping.
"""

import random
from decimal import Decimal

import pytest

from candleforge.domain.entities.intervention_rule import Trend
from candleforge.domain.services.intervention_resolver import InterventionResolver
from candleforge.domain.services.price_override import PriceOverrideFunction
from candleforge.domain.value_objects.effective_override import ActiveOverride
from tests.conftest import utc_ts


def test_none_override_passes_tick_through(make_tick):
    tick = make_tick(price="123.45")
    assert PriceOverrideFunction().apply(tick, None) is tick


@pytest.mark.parametrize(
    "trend, progress, expected",
    [
        (Trend.UP, 0.0, Decimal("65000")),
        (Trend.UP, 1.0, Decimal("66000")),
        (Trend.DOWN, 0.0, Decimal("66000")),
        (Trend.DOWN, 1.0, Decimal("65000")),
        (Trend.UP, 0.25, Decimal("65250")),
    ],
)
def test_trend_boundaries_without_noise(make_rule, make_tick, trend, progress, expected):
    fn = PriceOverrideFunction(noise_max_pct=0.0)
    override = ActiveOverride(rule=make_rule(trend=trend), progress=progress)

    result = fn.apply(make_tick(price="1"), override)

    assert result.price == expected


def test_btc_scenario_half_way_through_window(make_rule, make_tick):
    rule = make_rule(start="10:00", end="11:00", min_price="65000", max_price="66000")
    at = utc_ts(10, 30)
    override = InterventionResolver().resolve([rule], at)
    fn = PriceOverrideFunction(noise_max_pct=0.001, rng=random.Random(3))

    result = fn.apply(make_tick(price="50000", timestamp=at), override)

    assert override.progress == pytest.approx(0.5)
    assert abs(result.price - Decimal("65500")) <= Decimal("65.5")
    assert result.intervened is True


def test_random_trend_stays_within_band(make_rule, make_tick):
    rule = make_rule(trend=Trend.RANDOM, min_price="100", max_price="200")
    fn = PriceOverrideFunction(noise_max_pct=0.01, rng=random.Random(11))
    override = ActiveOverride(rule=rule, progress=0.5)

    prices = [fn.apply(make_tick(), override).price for _ in range(500)]

    assert all(Decimal("100") <= p <= Decimal("200") for p in prices)
    assert len(set(prices)) > 1


def test_noise_is_clamped_into_band(make_rule, make_tick):
    rule = make_rule(trend=Trend.UP, min_price="100", max_price="100")
    fn = PriceOverrideFunction(noise_max_pct=0.01, rng=random.Random(5))
    override = ActiveOverride(rule=rule, progress=1.0)

    assert {fn.apply(make_tick(), override).price for _ in range(50)} == {Decimal("100")}


def test_volume_and_metadata_preserved(make_rule, make_tick):
    tick = make_tick(price="10", volume="3.5", timestamp=123.0)
    override = ActiveOverride(rule=make_rule(), progress=0.0)

    result = PriceOverrideFunction(noise_max_pct=0.0).apply(tick, override)

    assert result.volume == Decimal("3.5")
    assert result.timestamp == 123.0
    assert result.instrument == tick.instrument
    assert tick.intervened is False


def test_same_seed_is_reproducible(make_rule, make_tick):
    override = ActiveOverride(rule=make_rule(trend=Trend.RANDOM), progress=0.3)
    a = PriceOverrideFunction(rng=random.Random(99))
    b = PriceOverrideFunction(rng=random.Random(99))

    assert [a.apply(make_tick(), override).price for _ in range(5)] == [
        b.apply(make_tick(), override).price for _ in range(5)
    ]


def test_progress_outside_unit_interval_rejected(make_rule):
    with pytest.raises(ValueError):
        ActiveOverride(rule=make_rule(), progress=1.5)
