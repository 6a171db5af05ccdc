"""
Dependency Injection Container.

Único lugar donde se crean dependencias concretas a partir de Settings.
Cada componente se construye de forma perezosa la primera vez que se pide
y se comparte después; override() permite sustituir cualquiera (tests).
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from candleforge.application.ports.tick_source import ITickSource
from candleforge.application.services.candle_synthesizer import CandleSynthesizer
from candleforge.application.services.intervention_journal import InterventionJournal
from candleforge.application.services.intervention_store import InterventionStore
from candleforge.application.services.market_engine import MarketEngine
from candleforge.application.services.snapshotter import Snapshotter
from candleforge.application.use_cases.process_tick_usecase import ProcessTickUseCase
from candleforge.domain.exceptions.domain_errors import ConfigurationError
from candleforge.domain.repositories.candle_sink import ICandleSink
from candleforge.domain.repositories.rule_source import IRuleSource
from candleforge.domain.services.intervention_resolver import InterventionResolver
from candleforge.domain.services.price_override import PriceOverrideFunction
from candleforge.domain.services.random_walk import RandomWalkGenerator
from candleforge.infrastructure.external.event_bus import EventBus
from candleforge.shared.config.settings import Settings


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Uso:
        container = Container(settings=Settings())
        await container.engine.start()
    """

    settings: Settings = field(default_factory=Settings)
    _instances: Dict[str, Any] = field(default_factory=dict)

    def _get(self, name: str, factory) -> Any:
        if name not in self._instances:
            self._instances[name] = factory()
        return self._instances[name]

    # ==================== Shared ====================

    @property
    def rules_timezone(self) -> ZoneInfo:
        def build() -> ZoneInfo:
            try:
                return ZoneInfo(self.settings.rules_timezone)
            except ZoneInfoNotFoundError as exc:
                raise ConfigurationError(
                    f"Zona horaria desconocida: {self.settings.rules_timezone}",
                    option="rules_timezone",
                ) from exc

        return self._get("rules_timezone", build)

    @property
    def event_bus(self) -> EventBus:
        return self._get(
            "event_bus", lambda: EventBus(max_queue_size=self.settings.event_bus_max_queue_size)
        )

    @property
    def db_manager(self):
        """DatabaseManager, solo si db_enabled."""
        def build():
            from candleforge.infrastructure.persistence.database import DatabaseManager
            return DatabaseManager(self.settings)

        if not self.settings.db_enabled:
            return None
        return self._get("db_manager", build)

    # ==================== Domain Services ====================

    @property
    def resolver(self) -> InterventionResolver:
        return self._get("resolver", lambda: InterventionResolver(self.rules_timezone))

    @property
    def override_fn(self) -> PriceOverrideFunction:
        return self._get(
            "override_fn",
            lambda: PriceOverrideFunction(
                noise_max_pct=self.settings.noise_max_pct,
                rng=random.Random(self.settings.fallback_seed),
            ),
        )

    @property
    def random_walk(self) -> RandomWalkGenerator:
        return self._get(
            "random_walk",
            lambda: RandomWalkGenerator(
                volatility=self.settings.fallback_volatility,
                seed=self.settings.fallback_seed,
                initial_prices=self.settings.fallback_initial_prices,
            ),
        )

    # ==================== Ports ====================

    @property
    def rule_source(self) -> IRuleSource:
        def build() -> IRuleSource:
            if self.settings.db_enabled:
                from candleforge.infrastructure.persistence.repositories import SqlRuleSource
                return SqlRuleSource(self.db_manager)
            if self.settings.rules_file:
                from candleforge.infrastructure.rules.file_rule_source import JsonFileRuleSource
                return JsonFileRuleSource(self.settings.rules_file)
            from candleforge.infrastructure.rules.memory_rule_source import InMemoryRuleSource
            return InMemoryRuleSource()

        return self._get("rule_source", build)

    @property
    def tick_source(self) -> ITickSource:
        def build() -> ITickSource:
            s = self.settings
            if s.tick_source == "stream":
                from candleforge.infrastructure.external.binance_stream_source import (
                    BinanceStreamTickSource,
                )
                return BinanceStreamTickSource(
                    s.instruments,
                    ws_url=s.stream_ws_url,
                    reconnect_base_delay=s.ws_reconnect_base_delay,
                    reconnect_max_delay=s.ws_reconnect_max_delay,
                )
            if s.tick_source == "synthetic":
                from candleforge.infrastructure.external.synthetic_source import (
                    SyntheticTickSource,
                )
                return SyntheticTickSource(
                    s.instruments,
                    self.random_walk,
                    tick_interval=s.fallback_tick_interval_seconds,
                )
            from candleforge.infrastructure.external.coingecko_fetcher import (
                CoinGeckoQuoteFetcher,
            )
            from candleforge.infrastructure.external.rest_polling_source import (
                RestPollingTickSource,
            )
            fetcher = CoinGeckoQuoteFetcher(s.coingecko_api_key, base_url=s.coingecko_base_url)
            return RestPollingTickSource(
                s.instruments,
                fetcher if fetcher.is_configured else None,
                self.random_walk,
                poll_interval=s.poll_interval_seconds,
                fetch_timeout=s.upstream_fetch_timeout_seconds,
            )

        return self._get("tick_source", build)

    @property
    def candle_sinks(self) -> list[ICandleSink]:
        def build() -> list[ICandleSink]:
            from candleforge.infrastructure.external.event_bus_sink import EventBusCandleSink
            sinks: list[ICandleSink] = [EventBusCandleSink(self.event_bus)]
            if self.settings.db_enabled:
                from candleforge.infrastructure.persistence.repositories import SqlCandleSink
                sinks.append(SqlCandleSink(self.db_manager))
            return sinks

        return self._get("candle_sinks", build)

    # ==================== Application ====================

    @property
    def intervention_store(self) -> InterventionStore:
        return self._get(
            "intervention_store",
            lambda: InterventionStore(
                self.rule_source,
                refresh_interval=self.settings.rule_refresh_seconds,
                tz=self.rules_timezone,
            ),
        )

    @property
    def journal(self) -> InterventionJournal:
        return self._get(
            "journal",
            lambda: InterventionJournal(
                max_entries=self.settings.intervention_log_size,
                deviation_alert=self.settings.intervention_deviation_alert,
            ),
        )

    @property
    def synthesizer(self) -> CandleSynthesizer:
        return self._get(
            "synthesizer",
            lambda: CandleSynthesizer(
                interval=self.settings.candle_interval_seconds,
                max_backfill_buckets=self.settings.max_backfill_buckets,
            ),
        )

    @property
    def snapshotter(self) -> Snapshotter:
        return self._get(
            "snapshotter",
            lambda: Snapshotter(
                max_candles=self.settings.max_candles_buffer,
                sinks=self.candle_sinks,
                event_publisher=self.event_bus,
            ),
        )

    @property
    def process_tick(self) -> ProcessTickUseCase:
        return self._get(
            "process_tick",
            lambda: ProcessTickUseCase(
                store=self.intervention_store,
                resolver=self.resolver,
                override_fn=self.override_fn,
                synthesizer=self.synthesizer,
                snapshotter=self.snapshotter,
                journal=self.journal,
                instruments=self.settings.instruments,
            ),
        )

    @property
    def engine(self) -> MarketEngine:
        return self._get(
            "engine",
            lambda: MarketEngine(
                instruments=self.settings.instruments,
                tick_source=self.tick_source,
                store=self.intervention_store,
                process_tick=self.process_tick,
                synthesizer=self.synthesizer,
                snapshotter=self.snapshotter,
                snapshot_interval=self.settings.snapshot_refresh_seconds,
            ),
        )

    # ==================== Presentation ====================

    @property
    def ws_manager(self):
        def build():
            from candleforge.presentation.websocket.websocket_manager import WebSocketManager
            return WebSocketManager(self.event_bus)

        return self._get("ws_manager", build)

    # ==================== Lifecycle ====================

    def reset(self) -> None:
        """Descarta todas las instancias (útil para tests)."""
        self._instances.clear()

    def override(self, name: str, instance: Any) -> None:
        """
        Sustituir una dependencia (útil para tests con fakes).

        Args:
            name: Nombre de la propiedad (ej: 'tick_source')
            instance: Instancia a usar
        """
        if not isinstance(getattr(type(self), name, None), property):
            raise ValueError(f"Unknown dependency: {name}")
        self._instances[name] = instance
