"""
CandleForge
===========
Motor de intervención de mercado y velas sintéticas: ingiere ticks, aplica
reglas de intervención administradas y publica una serie OHLCV continua.
"""

__version__ = "0.4.0"
