"""
CandleForge – SQLAlchemy async database
=========================================
Base declarativa y gestor de conexión MySQL async (aiomysql).

Implementación concreta de infraestructura: los adaptadores SQL (fuente de
reglas, sink de velas) la reciben por constructor; el core no la conoce.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from candleforge.shared.config.settings import Settings
from candleforge.shared.logging.logger import get_logger

logger = get_logger("database")

# ─── Naming Convention (para migraciones consistentes) ─────────────────────
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base declarativa para todos los modelos ORM."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class DatabaseManager:
    """
    Gestor del engine async y la session factory.

    USO:
        db = DatabaseManager(settings)
        await db.initialize()          # en el lifespan de FastAPI

        async with db.session() as session:
            result = await session.execute(...)

        await db.close()               # en shutdown
    """

    def __init__(self, settings: Settings, url: Optional[str] = None) -> None:
        self._settings = settings
        self._url = url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_url(self) -> str:
        """URL de conexión desde settings (o la URL explícita)."""
        if self._url:
            return self._url
        s = self._settings
        return (
            f"mysql+aiomysql://{s.db_user}:{s.db_password}"
            f"@{s.db_host}:{s.db_port}/{s.db_name}"
            f"?charset=utf8mb4"
        )

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def initialize(self, create_tables: bool = True) -> None:
        if self._engine is not None:
            return

        s = self._settings
        options = {"echo": s.db_echo, "pool_pre_ping": True}
        if self.database_url.startswith("mysql"):
            options.update(
                pool_size=s.db_pool_size,
                max_overflow=s.db_max_overflow,
                pool_recycle=3600,
            )
        self._engine = create_async_engine(self.database_url, **options)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if create_tables:
            # importa los modelos para registrarlos en Base.metadata
            from candleforge.infrastructure.persistence import models  # noqa: F401

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("Base de datos inicializada (%s)", self._engine.url.render_as_string())

    async def close(self) -> None:
        """Cierra el engine y todas las conexiones del pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Conexiones de base de datos cerradas")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Sesión con rollback automático ante cualquier error."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager no inicializado. Llama a initialize() primero.")

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
