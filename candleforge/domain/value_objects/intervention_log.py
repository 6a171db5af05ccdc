"""
CandleForge – Domain Value Object: InterventionLog
====================================================
Registro de auditoría de un tick intervenido: precio original, precio
ajustado y desviación relativa entre ambos.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class InterventionLog:
    rule_id: int
    instrument: str
    timestamp: float
    original_price: Decimal
    adjusted_price: Decimal
    deviation: float       # |ajustado - original| / original
    reason: str

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "instrument": self.instrument,
            "timestamp": self.timestamp,
            "original_price": float(self.original_price),
            "adjusted_price": float(self.adjusted_price),
            "deviation": round(self.deviation, 6),
            "reason": self.reason,
        }
