"""
Tests for Settings validation and Container wiring.
"""

import pytest
from pydantic import ValidationError

from candleforge.container import Container
from candleforge.domain.exceptions.domain_errors import ConfigurationError
from candleforge.infrastructure.external.binance_stream_source import BinanceStreamTickSource
from candleforge.infrastructure.external.rest_polling_source import RestPollingTickSource
from candleforge.infrastructure.external.synthetic_source import SyntheticTickSource
from candleforge.infrastructure.rules.file_rule_source import JsonFileRuleSource
from candleforge.infrastructure.rules.memory_rule_source import InMemoryRuleSource
from candleforge.shared.config.settings import Settings


class TestSettings:
    def test_instruments_are_normalized_and_deduplicated(self):
        settings = Settings(_env_file=None, instruments=[" btc/usdt", "BTC/USDT", "eth/usdt", ""])
        assert settings.instruments == ["BTC/USDT", "ETH/USDT"]

    def test_noise_bound_is_validated(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, noise_max_pct=0.02)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CANDLE_INTERVAL_SECONDS", "300")
        monkeypatch.setenv("INSTRUMENTS", '["sol/usdt"]')
        monkeypatch.setenv("TICK_SOURCE", "synthetic")

        settings = Settings(_env_file=None)

        assert settings.candle_interval_seconds == 300
        assert settings.instruments == ["SOL/USDT"]
        assert settings.tick_source == "synthetic"

    def test_unknown_tick_source_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, tick_source="carrier-pigeon")


class TestContainer:
    @pytest.mark.parametrize(
        "tick_source, expected",
        [
            ("rest", RestPollingTickSource),
            ("stream", BinanceStreamTickSource),
            ("synthetic", SyntheticTickSource),
        ],
    )
    def test_tick_source_selection(self, tick_source, expected):
        container = Container(settings=Settings(_env_file=None, tick_source=tick_source))
        assert isinstance(container.tick_source, expected)

    def test_rest_source_without_api_key_falls_back_everywhere(self):
        container = Container(settings=Settings(_env_file=None, coingecko_api_key=""))
        assert not container.tick_source.is_configured("BTC/USDT")

    def test_rule_source_selection(self, tmp_path):
        assert isinstance(Container(settings=Settings(_env_file=None)).rule_source, InMemoryRuleSource)

        path = tmp_path / "rules.json"
        container = Container(settings=Settings(_env_file=None, rules_file=str(path)))
        assert isinstance(container.rule_source, JsonFileRuleSource)
        assert container.rule_source.path == path

    def test_dependencies_are_shared(self):
        container = Container(settings=Settings(_env_file=None))
        assert container.engine is container.engine
        assert container.process_tick.stats == container.engine.stats["pipeline"]

    def test_override_rejects_unknown_names(self):
        with pytest.raises(ValueError):
            Container(settings=Settings(_env_file=None)).override("nope", object())

    def test_unknown_timezone_is_configuration_error(self):
        container = Container(settings=Settings(_env_file=None, rules_timezone="Nowhere/City"))
        with pytest.raises(ConfigurationError):
            container.resolver
