"""
CandleForge – Settings (Pydantic BaseSettings)
================================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

NOTA: No existe un singleton global. El entry point (main.py) construye
UNA instancia de Settings y la pasa explícitamente al Container; ningún
componente del core lee configuración implícita.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from candleforge.shared.config.instruments import DEFAULT_INSTRUMENTS


class Settings(BaseSettings):
    # ─── Instrumentos ───────────────────────────────────────────────────
    instruments: List[str] = Field(
        default_factory=lambda: list(DEFAULT_INSTRUMENTS),
        description="Pares negociables que el motor ingiere (e.g. BTC/USDT)",
    )

    # ─── Tick Source ────────────────────────────────────────────────────
    tick_source: Literal["rest", "stream", "synthetic"] = Field(
        default="rest",
        description="Origen de ticks: polling REST, stream WS o random walk puro",
    )
    poll_interval_seconds: float = Field(
        default=10.0, gt=0, description="Intervalo (seg) entre ciclos de polling REST",
    )
    upstream_fetch_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Timeout (seg) por instrumento y ciclo",
    )
    coingecko_api_key: str = Field(
        default="", description="API key de CoinGecko (vacía = upstream no configurado)",
    )
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Endpoint REST de CoinGecko",
    )
    stream_ws_url: str = Field(
        default="wss://stream.binance.com:9443/stream",
        description="WebSocket combinado de Binance (trade streams)",
    )
    ws_reconnect_base_delay: float = Field(
        default=1.0, description="Delay base (seg) para backoff exponencial"
    )
    ws_reconnect_max_delay: float = Field(
        default=60.0, description="Delay máximo (seg) entre reconexiones"
    )

    # ─── Fallback (random walk) ─────────────────────────────────────────
    fallback_volatility: float = Field(
        default=0.0005, ge=0, description="Desviación típica del paso logarítmico",
    )
    fallback_seed: Optional[int] = Field(
        default=None, description="Semilla del random walk (None = no determinista)",
    )
    fallback_tick_interval_seconds: float = Field(
        default=1.0, gt=0, description="Cadencia (seg) de ticks sintéticos",
    )
    fallback_initial_prices: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "BTC/USDT": Decimal("120000"),
            "ETH/USDT": Decimal("6500"),
        },
        description="Precio semilla por instrumento cuando no hay precio conocido",
    )

    # ─── Intervenciones ─────────────────────────────────────────────────
    rule_refresh_seconds: float = Field(
        default=30.0, gt=0, description="Staleness máxima del RuleSet (seg)",
    )
    rules_timezone: str = Field(
        default="UTC", description="Zona horaria de las ventanas time-of-day",
    )
    rules_file: str = Field(
        default="", description="Fichero JSON de reglas (vacío = sin reglas locales)",
    )
    noise_max_pct: float = Field(
        default=0.001, ge=0, le=0.01,
        description="Magnitud máxima del ruido multiplicativo (0.001 = 0.1%)",
    )
    intervention_log_size: int = Field(
        default=1000, gt=0, description="Entradas de auditoría retenidas en memoria",
    )
    intervention_deviation_alert: float = Field(
        default=0.1, gt=0, description="Desviación relativa que dispara un warning",
    )

    # ─── Candle Synthesizer ─────────────────────────────────────────────
    candle_interval_seconds: int = Field(
        default=60, gt=0, description="Duración del bucket de vela en segundos"
    )
    max_candles_buffer: int = Field(
        default=240, gt=0, description="Velas cerradas retenidas por instrumento"
    )
    max_backfill_buckets: int = Field(
        default=240, gt=0, description="Máximo de buckets sintéticos al rellenar un hueco",
    )

    # ─── Snapshot ───────────────────────────────────────────────────────
    snapshot_refresh_seconds: float = Field(
        default=5.0, gt=0, description="Cadencia (seg) del snapshot visible",
    )

    # ─── Event Bus ──────────────────────────────────────────────────────
    event_bus_max_queue_size: int = Field(
        default=10_000,
        description="Tamaño máximo de cola del Event Bus para contrapresión",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8888)
    debug: bool = Field(default=False)

    # ─── MySQL Database ─────────────────────────────────────────────────
    db_host: str = Field(default="localhost", description="MySQL host")
    db_port: int = Field(default=3306, description="MySQL port")
    db_user: str = Field(default="candleforge", description="MySQL username")
    db_password: str = Field(default="candleforge_secret", description="MySQL password")
    db_name: str = Field(default="candleforge", description="MySQL database name")
    db_echo: bool = Field(default=False, description="Loguear queries SQL (debug)")
    db_pool_size: int = Field(default=5, description="Conexiones en el pool")
    db_max_overflow: int = Field(default=10, description="Conexiones extra en picos")
    db_enabled: bool = Field(default=False, description="Habilitar persistencia MySQL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @field_validator("instruments")
    @classmethod
    def _strip_instruments(cls, value: List[str]) -> List[str]:
        cleaned: List[str] = []
        for item in value:
            item = item.strip().upper()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned
