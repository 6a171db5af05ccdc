"""
CandleForge – API Schemas (Pydantic)
======================================
Schemas de respuesta de la API REST.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class CandleSchema(BaseModel):
    instrument: str
    bucket_start: float
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_synthetic: bool
    interval: int
    tick_count: int
    intervened: bool


class CandlesResponse(BaseModel):
    instrument: str
    count: int
    snapshot_version: int
    candles: List[CandleSchema]
    building: Optional[CandleSchema] = None


class PriceResponse(BaseModel):
    instrument: str
    price: float
    timestamp: Optional[float] = None
    source: Optional[str] = None
    intervened: bool = False
    snapshot_version: int


class RuleSetResponse(BaseModel):
    version: int
    fetched_at: float
    count: int
    rules: List[dict]


class InterventionLogsResponse(BaseModel):
    total: int
    count: int
    logs: List[dict]
