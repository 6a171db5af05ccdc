"""Mappers entre modelos ORM y entidades de dominio."""

from candleforge.infrastructure.persistence.mappers.candle_mapper import CandleMapper
from candleforge.infrastructure.persistence.mappers.rule_mapper import RuleMapper

__all__ = ["CandleMapper", "RuleMapper"]
