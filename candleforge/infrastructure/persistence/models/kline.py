"""
CandleForge – MarketKline ORM Model
=====================================
Tabla `market_kline_data`: velas cerradas publicadas por el core.

- Único (trading_pair, interval_seconds, open_time): una vela por bucket.
- is_synthetic / is_intervened permiten excluir velas de relleno o
  intervenidas en analítica.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger, Boolean, DateTime, Integer, Numeric, String, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from candleforge.infrastructure.persistence.database import Base


class MarketKlineModel(Base):
    __tablename__ = "market_kline_data"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    trading_pair: Mapped[str] = mapped_column(String(32), nullable=False)
    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    open_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    open: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    high: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    low: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    close: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    volume: Mapped[Decimal] = mapped_column(Numeric(28, 8), nullable=False, default=0)

    tick_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_synthetic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_intervened: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("trading_pair", "interval_seconds", "open_time"),
    )

    def __repr__(self) -> str:
        return f"<MarketKline({self.trading_pair} @ {self.open_time} C={self.close})>"
