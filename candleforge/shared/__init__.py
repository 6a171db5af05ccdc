"""
CandleForge – Shared Module
=============================
Utilidades transversales usadas por todas las capas.

- config/: Settings y catálogo de instrumentos
- logging/: Setup de logging

NOTA: Este módulo no contiene lógica de negocio.
"""

from candleforge.shared.config.settings import Settings
from candleforge.shared.logging.logger import setup_logging, get_logger

__all__ = [
    "Settings",
    "setup_logging",
    "get_logger",
]
