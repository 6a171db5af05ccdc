"""
CandleForge – Domain Repository Interface: Rule Source
========================================================
Contrato de lectura de las reglas de intervención administradas.

REGLA DE CLEAN ARCHITECTURE:
- Esta interfaz vive en domain/ (capa interna)
- Las implementaciones (memoria, fichero JSON, MySQL) viven en infrastructure/
- El core nunca escribe reglas: la fuente es de solo lectura
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from candleforge.domain.entities.intervention_rule import InterventionRule


class IRuleSource(ABC):
    """
    Fuente externa de reglas de intervención.

    Las implementaciones devuelven el conjunto COMPLETO comprometido por la
    administración; el filtrado por instrumento/instante y la resolución de
    conflictos ocurren aguas abajo (InterventionStore / InterventionResolver).
    """

    @abstractmethod
    async def fetch_rules(self) -> Sequence[InterventionRule]:
        """
        Lee todas las reglas vigentes.

        Raises:
            RuleSourceError: si la fuente no está disponible
        """
        pass
