"""Adaptadores SQL de los puertos de dominio."""

from candleforge.infrastructure.persistence.repositories.sql_candle_sink import SqlCandleSink
from candleforge.infrastructure.persistence.repositories.sql_rule_source import SqlRuleSource

__all__ = ["SqlCandleSink", "SqlRuleSource"]
