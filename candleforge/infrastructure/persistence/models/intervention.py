"""
CandleForge – MarketIntervention ORM Model
============================================
Tabla `market_interventions`: reglas comprometidas por la consola de
administración. El core solo la LEE.

- DECIMAL(20,8) para la banda de precios.
- TIME para la ventana horaria diaria (puede cruzar medianoche).
- JSON para la recurrencia ({"type": "weekly", "days": [0, 2, 4]}).
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON, BigInteger, Boolean, Date, DateTime, Enum as SQLEnum, Index,
    Integer, Numeric, String, Text, Time, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from candleforge.infrastructure.persistence.database import Base


class MarketInterventionModel(Base):
    __tablename__ = "market_interventions"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    trading_pair: Mapped[str] = mapped_column(String(32), nullable=False)

    # ─── Ventana horaria ─────────────────────────────────────────────
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    # ─── Banda y tendencia ───────────────────────────────────────────
    min_price: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    max_price: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    trend: Mapped[str] = mapped_column(
        SQLEnum("up", "down", "random", name="intervention_trend_enum"),
        nullable=False,
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # ─── Calendario ──────────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    recurrence: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # ─── Auditoría ───────────────────────────────────────────────────
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_market_interventions_pair_active", "trading_pair", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<MarketIntervention(id={self.id}, pair={self.trading_pair}, "
            f"{self.start_time}-{self.end_time}, trend={self.trend})>"
        )
