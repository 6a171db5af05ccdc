"""
CandleForge – API Routes (FastAPI)
====================================
Endpoints REST y WebSocket de solo lectura sobre el snapshot visible.

Endpoints disponibles:
  WS   /ws/market                  → velas cerradas + snapshots en tiempo real
  GET  /api/health                 → health check
  GET  /api/status                 → estado completo del motor
  GET  /api/snapshot               → snapshot vigente (opcional ?instrument=)
  GET  /api/candles?instrument=&count= → últimas N velas cerradas
  GET  /api/price?instrument=      → último precio conocido
  GET  /api/interventions/rules    → RuleSet vigente
  GET  /api/interventions/logs     → auditoría de ticks intervenidos

Las dependencias se leen de `app.state.container` (lo fija create_app).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect

from candleforge import __version__
from candleforge.presentation.api.schemas import (
    CandlesResponse,
    HealthResponse,
    InterventionLogsResponse,
    PriceResponse,
    RuleSetResponse,
)
from candleforge.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()


def _container(request: Request):
    return request.app.state.container


def _known_instrument(container, instrument: str) -> str:
    instrument = instrument.strip().upper()
    if instrument not in container.settings.instruments:
        raise HTTPException(status_code=404, detail=f"Instrumento desconocido: {instrument}")
    return instrument


# ─── WebSocket endpoint para streaming a frontend ─────────────────────

@router.websocket("/ws/market")
async def market_stream(websocket: WebSocket) -> None:
    """
    El frontend se conecta aquí para recibir velas cerradas y snapshots.
    El broadcast lo maneja WebSocketManager; este handler solo gestiona el
    ciclo de vida de la conexión.
    """
    ws_manager = websocket.app.state.container.ws_manager
    await ws_manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            logger.debug("Mensaje de cliente WS: %s", data[:100])
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)


# ─── REST endpoints de estado ──────────────────────────────────────────

@router.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", service="candleforge", version=__version__)


@router.get("/api/status")
async def system_status(request: Request) -> dict:
    container = _container(request)
    return {
        "engine": container.engine.stats,
        "event_bus": container.event_bus.stats,
        "ws_clients": container.ws_manager.client_count,
        "interventions_logged": container.journal.total,
    }


@router.get("/api/snapshot")
async def get_snapshot(request: Request, instrument: Optional[str] = None) -> dict:
    container = _container(request)
    data = container.snapshotter.current_snapshot().to_dict()
    if instrument is not None:
        instrument = _known_instrument(container, instrument)
        data["latest_ticks"] = {
            k: v for k, v in data["latest_ticks"].items() if k == instrument
        }
        data["candles"] = {k: v for k, v in data["candles"].items() if k == instrument}
    return data


@router.get("/api/candles", response_model=CandlesResponse)
async def get_candles(
    request: Request,
    instrument: str = Query(..., description="Instrumento, e.g. BTC/USDT"),
    count: int = Query(default=100, ge=1, le=1000),
    include_building: bool = Query(default=False),
) -> CandlesResponse:
    container = _container(request)
    instrument = _known_instrument(container, instrument)
    snapshot = container.snapshotter.current_snapshot()
    candles = snapshot.candles_for(instrument, count)
    building = container.synthesizer.building_candle(instrument) if include_building else None
    return CandlesResponse(
        instrument=instrument,
        count=len(candles),
        snapshot_version=snapshot.version,
        candles=[c.to_dict() for c in candles],
        building=building,
    )


@router.get("/api/price", response_model=PriceResponse)
async def get_price(
    request: Request,
    instrument: str = Query(..., description="Instrumento, e.g. BTC/USDT"),
) -> PriceResponse:
    container = _container(request)
    instrument = _known_instrument(container, instrument)
    snapshot = container.snapshotter.current_snapshot()
    price = snapshot.latest_price(instrument)
    if price is None:
        raise HTTPException(status_code=404, detail=f"Sin precio todavía para {instrument}")
    tick = snapshot.latest_ticks.get(instrument)
    return PriceResponse(
        instrument=instrument,
        price=price,
        timestamp=tick.timestamp if tick else None,
        source=tick.source if tick else None,
        intervened=tick.intervened if tick else False,
        snapshot_version=snapshot.version,
    )


# ─── Intervenciones (solo lectura) ─────────────────────────────────────

@router.get("/api/interventions/rules", response_model=RuleSetResponse)
async def get_rules(request: Request, instrument: Optional[str] = None) -> RuleSetResponse:
    container = _container(request)
    rule_set = container.intervention_store.rule_set
    rules = (
        rule_set.for_instrument(instrument.strip().upper())
        if instrument else rule_set.all_rules()
    )
    return RuleSetResponse(
        version=rule_set.version,
        fetched_at=rule_set.fetched_at,
        count=len(rules),
        rules=[r.to_dict() for r in rules],
    )


@router.get("/api/interventions/logs", response_model=InterventionLogsResponse)
async def get_intervention_logs(
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
    instrument: Optional[str] = None,
) -> InterventionLogsResponse:
    journal = _container(request).journal
    logs = journal.recent(limit, instrument.strip().upper() if instrument else None)
    return InterventionLogsResponse(
        total=journal.total,
        count=len(logs),
        logs=[entry.to_dict() for entry in logs],
    )
