"""Configuración tipada."""
from candleforge.shared.config.settings import Settings

__all__ = ["Settings"]
