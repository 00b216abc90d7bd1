"""
Connection Pool Management Module

Owns the process-wide async engine (SQLAlchemy's connection pool) built from
the resolved connection config. The engine is rebuilt when the resolved
config changes and the `kv` table is ensured on every fresh build.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, Optional

from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from storekv.common.errors import BackendUnavailableError
from storekv.common.time import utc_now
from storekv.config import Settings, get_settings
from storekv.db.config_resolver import ConnectionConfig, resolve_connection_config
from storekv.db.models import Base
from storekv.domain.connection import ConnectionCheck, DatabasePing

logger = logging.getLogger(__name__)

ConfigResolver = Callable[[], Optional[ConnectionConfig]]


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class PoolStatus(BaseModel):
    """Observable pool state snapshot"""

    state: PoolState = Field(..., description="Readiness state")
    dialect: Optional[str] = Field(None, description="Dialect of the current engine")
    last_error_at: Optional[datetime] = Field(None, description="Time of the last failure")
    last_error: Optional[str] = Field(None, description="Message of the last failure")
    size: Optional[int] = Field(None, description="Configured pool size")
    checked_out: Optional[int] = Field(None, description="Connections in use")
    checked_in: Optional[int] = Field(None, description="Idle connections")
    overflow: Optional[int] = Field(None, description="Overflow connections")


class ConnectionPoolManager:
    """
    Lazily builds and caches the async engine for the resolved config.

    Not guarded against two concurrent first-time builds; the last one to
    finish wins and the other engine is left for garbage collection.
    """

    def __init__(
        self,
        resolver: ConfigResolver = resolve_connection_config,
        settings: Optional[Settings] = None,
    ):
        self._resolver = resolver
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._fingerprint: Optional[str] = None
        self._state = PoolState.UNINITIALIZED
        self._last_error_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == PoolState.READY

    def _engine_options(self, config: ConnectionConfig) -> dict:
        options: dict = {
            "echo": self._settings.DEBUG,
            "connect_args": config.connect_args(self._settings.POOL_TIMEOUT_SECONDS),
        }
        if config.is_postgres:
            options.update(
                pool_size=self._settings.POOL_MAX_SIZE,
                max_overflow=0,
                pool_timeout=self._settings.POOL_TIMEOUT_SECONDS,
                pool_recycle=self._settings.POOL_RECYCLE_SECONDS,
            )
        return options

    async def get_pool(self) -> AsyncEngine:
        """
        Get the engine for the currently resolved config.

        Raises:
            BackendUnavailableError: If no relational config resolves
        """
        config = self._resolver()
        if config is None:
            raise BackendUnavailableError()

        fingerprint = config.fingerprint()
        if self._engine is not None and self._fingerprint == fingerprint:
            return self._engine

        if self._engine is not None:
            logger.info("Connection config changed, rebuilding pool")
            await self._dispose()

        self._state = PoolState.INITIALIZING
        engine = create_async_engine(config.url(), **self._engine_options(config))
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            self.record_error(e)
            self._state = PoolState.UNINITIALIZED
            await engine.dispose()
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._fingerprint = fingerprint
        self._state = PoolState.READY
        logger.info(f"Connection pool ready ({engine.dialect.name})")
        return engine

    async def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        await self.get_pool()
        return self._session_factory

    async def _dispose(self) -> None:
        engine = self._engine
        self._engine = None
        self._session_factory = None
        self._fingerprint = None
        try:
            await engine.dispose()
        except Exception as e:
            logger.warning(f"Failed to close previous pool: {e}")

    async def shutdown(self) -> None:
        if self._engine is None:
            return
        await self._dispose()
        self._state = PoolState.UNINITIALIZED
        logger.info("Connection pool closed")

    def record_error(self, exc: BaseException) -> None:
        """Remember the last failure; the state is left untouched."""
        self._last_error_at = utc_now()
        self._last_error = str(exc)

    @contextmanager
    def track_errors(self) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            self.record_error(e)
            raise

    def status(self) -> PoolStatus:
        snapshot = PoolStatus(
            state=self._state,
            last_error_at=self._last_error_at,
            last_error=self._last_error,
        )
        if self._engine is None:
            return snapshot

        snapshot.dialect = self._engine.dialect.name
        pool = self._engine.pool
        for field, method in (
            ("size", "size"),
            ("checked_out", "checkedout"),
            ("checked_in", "checkedin"),
            ("overflow", "overflow"),
        ):
            counter = getattr(pool, method, None)
            if callable(counter):
                setattr(snapshot, field, counter())
        return snapshot

    async def ping(self) -> DatabasePing:
        """Time a SELECT 1 through the shared pool"""
        if not self.is_ready:
            return DatabasePing(error=f"pool {self._state.value}")
        try:
            with self.track_errors():
                started = time.perf_counter()
                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                elapsed = time.perf_counter() - started
        except Exception as e:
            return DatabasePing(error=str(e))
        return DatabasePing(ping_ms=round(elapsed * 1000, 2))


_POSTGRES_INFO = text(
    "SELECT version(), current_database(), "
    "pg_size_pretty(pg_database_size(current_database()))"
)


async def check_connection(
    config: ConnectionConfig, settings: Optional[Settings] = None
) -> ConnectionCheck:
    """
    Connect once with a throwaway engine, ensure the `kv` table and report
    the server version, database name and (PostgreSQL only) size.

    The shared pool is not touched; failures are returned, not raised.
    """
    settings = settings or get_settings()
    engine = create_async_engine(
        config.url(),
        poolclass=NullPool,
        connect_args=config.connect_args(settings.POOL_TIMEOUT_SECONDS),
    )
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            if config.is_postgres:
                version, database, size = (await conn.execute(_POSTGRES_INFO)).one()
            else:
                info = engine.dialect.server_version_info or ()
                version = ".".join(str(part) for part in info) or None
                database = engine.url.database
                size = None
    except Exception as e:
        logger.warning(f"Connection check failed: {e}")
        return ConnectionCheck(ok=False, error=str(e))
    finally:
        await engine.dispose()
    return ConnectionCheck(ok=True, version=version, database=database, size=size)
