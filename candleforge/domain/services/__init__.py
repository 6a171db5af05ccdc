"""Servicios de dominio puros (sin I/O)."""
from candleforge.domain.services.intervention_resolver import InterventionResolver
from candleforge.domain.services.price_override import PriceOverrideFunction
from candleforge.domain.services.random_walk import RandomWalkGenerator

__all__ = ["InterventionResolver", "PriceOverrideFunction", "RandomWalkGenerator"]
