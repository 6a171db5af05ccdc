"""
CandleForge – Main Application Entry Point
============================================
Construye Settings UNA vez, arma el Container y expone la app FastAPI.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. Settings() → Container(settings)
  3. Lifespan startup:
     a. Base de datos (solo si db_enabled)
     b. WebSocketManager (broadcast a frontend)
     c. MarketEngine (reglas + fuente de ticks + reloj + snapshot)
  4. Lifespan shutdown: todo en orden inverso (flush de velas incluido)

FLUJO DE DATOS:
  TickSource → MarketEngine.ingest → ProcessTickUseCase
       → InterventionStore + InterventionResolver → PriceOverrideFunction
       → CandleSynthesizer → Snapshotter → sinks (EventBus, MySQL)
       → EventBus(candle|snapshot) → WebSocketManager → Frontend

  uvicorn candleforge.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from candleforge import __version__
from candleforge.container import Container
from candleforge.domain.exceptions.domain_errors import DomainError
from candleforge.presentation.api.routes import router
from candleforge.shared.logging.logger import get_logger, setup_logging

logger = get_logger("main")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Fábrica de la app. Los tests pasan su propio Container."""
    container = container or Container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        s = container.settings
        logger.info("=" * 60)
        logger.info("  CandleForge v%s", __version__)
        logger.info("  Instrumentos: %s", ", ".join(s.instruments))
        logger.info("  Fuente de ticks: %s", s.tick_source)
        logger.info("  Vela: %ds | buffer %d | snapshot cada %.1fs",
                    s.candle_interval_seconds, s.max_candles_buffer,
                    s.snapshot_refresh_seconds)
        logger.info("  Reglas: refresco %.0fs, zona %s", s.rule_refresh_seconds, s.rules_timezone)
        logger.info("=" * 60)

        db = container.db_manager
        if db is not None:
            await db.initialize()
            logger.info("  Database: MySQL conectada (%s@%s/%s)", s.db_user, s.db_host, s.db_name)
        else:
            logger.info("  Database: Deshabilitada (db_enabled=False)")

        await container.ws_manager.start()
        await container.engine.start()
        logger.info("✓ Todos los componentes iniciados correctamente")

        yield

        logger.info("Iniciando shutdown...")
        await container.engine.stop()
        await container.ws_manager.stop()
        await container.event_bus.unsubscribe_all()
        if db is not None:
            await db.close()
        logger.info("✓ Shutdown completo")

    app = FastAPI(
        title="CandleForge",
        description="Motor de velas OHLCV con intervención de precios administrada",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.warning("DomainError en %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=400, content=exc.to_dict())

    app.include_router(router)
    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    _settings = app.state.container.settings
    setup_logging(logging.DEBUG if _settings.debug else logging.INFO)
    uvicorn.run(app, host=_settings.host, port=_settings.port)
