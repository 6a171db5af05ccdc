"""Interfaces de repositorio (ABCs). Las implementaciones viven en infrastructure/."""
from candleforge.domain.repositories.candle_sink import ICandleSink
from candleforge.domain.repositories.rule_source import IRuleSource

__all__ = ["ICandleSink", "IRuleSource"]
