"""
Modelos ORM de SQLAlchemy.

Representan la estructura de la base de datos, NO las entidades de dominio.
"""

from candleforge.infrastructure.persistence.models.intervention import MarketInterventionModel
from candleforge.infrastructure.persistence.models.kline import MarketKlineModel

__all__ = [
    "MarketInterventionModel",
    "MarketKlineModel",
]
