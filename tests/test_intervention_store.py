"""
Tests for InterventionStore: refresh, staleness and calendar filtering.
"""

import asyncio
from datetime import date

import pytest

from candleforge.application.services.intervention_store import InterventionStore
from candleforge.domain.entities.intervention_rule import Recurrence, RecurrenceType
from candleforge.domain.exceptions.domain_errors import RuleSourceError
from candleforge.domain.repositories.rule_source import IRuleSource
from candleforge.infrastructure.rules.memory_rule_source import InMemoryRuleSource
from tests.conftest import utc_ts


class FlakySource(IRuleSource):
    def __init__(self, rules):
        self.rules = rules
        self.fail = False

    async def fetch_rules(self):
        if self.fail:
            raise RuleSourceError("MySQL caído")
        return self.rules


def test_refresh_builds_versioned_rule_set(make_rule, clock):
    source = InMemoryRuleSource([make_rule(rule_id=1), make_rule(rule_id=2, instrument="ETH/USDT")])
    store = InterventionStore(source, refresh_interval=30, clock=clock)

    rule_set = asyncio.run(store.refresh())

    assert rule_set.version == 1
    assert rule_set.rule_count == 2
    assert rule_set.fetched_at == clock.now
    assert [r.id for r in store.active_rules("BTC/USDT", utc_ts(10, 30))] == [1]


def test_failed_refresh_keeps_previous_rule_set(make_rule, clock):
    source = FlakySource([make_rule(rule_id=7)])
    store = InterventionStore(source, clock=clock)
    asyncio.run(store.refresh())

    source.fail = True
    rule_set = asyncio.run(store.refresh())

    assert rule_set.version == 1
    assert [r.id for r in rule_set.all_rules()] == [7]
    assert store.stats["failures"] == 1
    assert store.stats["last_error"] == "MySQL caído"


def test_admin_commit_visible_after_refresh(make_rule, clock):
    source = InMemoryRuleSource([make_rule(rule_id=1)])
    store = InterventionStore(source, clock=clock)
    asyncio.run(store.refresh())

    source.replace([make_rule(rule_id=1), make_rule(rule_id=2)])
    assert store.rule_set.rule_count == 1

    asyncio.run(store.refresh())
    assert store.rule_set.rule_count == 2
    assert store.rule_set.version == 2


def test_staleness_follows_refresh_interval(make_rule, clock):
    store = InterventionStore(InMemoryRuleSource([make_rule()]), refresh_interval=30, clock=clock)
    assert store.is_stale()

    asyncio.run(store.ensure_fresh())
    assert not store.is_stale()

    clock.advance(29)
    assert not store.is_stale()
    clock.advance(1)
    assert store.is_stale()

    asyncio.run(store.ensure_fresh())
    assert store.rule_set.version == 2


@pytest.mark.parametrize(
    "extra, expected",
    [
        ({}, True),
        ({"enabled": False}, False),
        ({"start_date": date(2024, 1, 2)}, False),
        ({"end_date": date(2023, 12, 31)}, False),
        ({"start_date": date(2023, 12, 1), "end_date": date(2024, 1, 31)}, True),
        ({"recurrence": Recurrence(RecurrenceType.WEEKLY, (0,))}, True),
        ({"recurrence": Recurrence(RecurrenceType.WEEKLY, (5, 6))}, False),
        ({"recurrence": Recurrence(RecurrenceType.MONTHLY, (1, 15))}, True),
        ({"recurrence": Recurrence(RecurrenceType.MONTHLY, (2,))}, False),
    ],
)
def test_calendar_filtering(make_rule, clock, extra, expected):
    # 2024-01-01 es lunes
    store = InterventionStore(InMemoryRuleSource([make_rule(**extra)]), clock=clock)
    asyncio.run(store.refresh())

    assert bool(store.active_rules("BTC/USDT", utc_ts(10, 30))) is expected


def test_unknown_instrument_has_no_rules(make_rule, clock):
    store = InterventionStore(InMemoryRuleSource([make_rule()]), clock=clock)
    asyncio.run(store.refresh())
    assert store.active_rules("DOGE/USDT", utc_ts(10, 30)) == []
