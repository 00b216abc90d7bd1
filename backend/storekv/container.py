"""
Composition Root

Builds the process-wide services once and hands them to request handlers
through dependency injection. Tests construct their own container.
"""

import logging
from functools import partial
from typing import Any, Optional

from pydantic import BaseModel

from storekv.common.errors import BackendUnavailableError
from storekv.config import Settings, get_settings
from storekv.db.config_resolver import (
    resolve_connection_config,
    resolve_connection_source,
    save_connection_config,
)
from storekv.db.pool import ConfigResolver, ConnectionPoolManager, PoolStatus
from storekv.domain.connection import ConnectionInfo, DatabasePing
from storekv.domain.migration import (
    AppearanceMigrationResult,
    EntityMigrationResult,
    MigrationStatus,
)
from storekv.repositories.file import FileKVStoreRepository
from storekv.repositories.kv_store_repo import KVStoreRepository
from storekv.repositories.sqlalchemy import SQLAlchemyKVStoreRepository
from storekv.services.cache import CacheStats, TTLCache
from storekv.services.kv_service import KVStoreService
from storekv.services.migration import (
    get_migration_status,
    run_appearance_migration,
    run_entity_migration,
)

logger = logging.getLogger(__name__)


class StoreStatus(BaseModel):
    """Process-wide status snapshot"""

    backend: str
    ready: bool
    pool: Optional[PoolStatus] = None
    cache: CacheStats
    data_version: int


class StoreContainer:
    """
    Owns the pool manager, the read cache and the KV service.

    The backend is picked once in init(): relational when a connection
    config resolves, the flat file otherwise.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resolver: Optional[ConfigResolver] = None,
    ):
        self.settings = settings or get_settings()
        self._resolver = resolver or partial(
            resolve_connection_config,
            config_file=self.settings.PG_CONFIG_FILE,
            backup_file=self.settings.PG_BACKUP_FILE,
        )
        self.cache = TTLCache.from_settings(self.settings)
        self.pools: Optional[ConnectionPoolManager] = None
        self._kv: Optional[KVStoreService] = None

    @property
    def kv(self) -> KVStoreService:
        if self._kv is None:
            raise RuntimeError("Store container not initialized. Call init() first.")
        return self._kv

    async def init(self) -> None:
        repo: KVStoreRepository
        if self._resolver() is not None:
            self.pools = ConnectionPoolManager(self._resolver, self.settings)
            repo = SQLAlchemyKVStoreRepository(self.pools)
            try:
                await self.pools.get_pool()
            except Exception as e:
                # Not fatal, the pool is built again on the first request
                logger.error(f"Connection pool warmup failed: {e}")
        else:
            logger.warning(
                f"No relational connection config found, using flat-file store {self.settings.STORE_FILE}"
            )
            repo = FileKVStoreRepository(self.settings.STORE_FILE)
        initial_version = self._kv.data_version if self._kv is not None else 0
        self._kv = KVStoreService(repo, self.cache, initial_version=initial_version)
        logger.info(f"Store initialized with {repo.backend} backend")

    async def shutdown(self) -> None:
        if self.pools is not None:
            await self.pools.shutdown()
        self.cache.flush()

    async def reload(self) -> None:
        """Close the pool and pick the backend again from the current config"""
        await self.shutdown()
        self.pools = None
        await self.init()

    def connection_info(self) -> ConnectionInfo:
        config, source = resolve_connection_source(
            config_file=self.settings.PG_CONFIG_FILE,
            backup_file=self.settings.PG_BACKUP_FILE,
        )
        return ConnectionInfo(
            config=config.public_view() if config is not None else None,
            source=source,
            backend=self._kv.repo.backend if self._kv is not None else None,
        )

    async def save_connection_config(self, raw: dict[str, Any]) -> ConnectionInfo:
        save_connection_config(self.settings.PG_CONFIG_FILE, raw)
        await self.reload()
        return self.connection_info()

    async def clear_connection_config(self) -> ConnectionInfo:
        save_connection_config(self.settings.PG_CONFIG_FILE, None)
        await self.reload()
        return self.connection_info()

    async def ping(self) -> DatabasePing:
        if self.pools is None:
            return DatabasePing(error="no relational backend")
        return await self.pools.ping()

    def _require_pools(self) -> ConnectionPoolManager:
        if self.pools is None:
            raise BackendUnavailableError(
                "Migration requires the relational backend, no connection config is set"
            )
        return self.pools

    async def run_migrations(
        self, force: bool = False
    ) -> tuple[AppearanceMigrationResult, list[EntityMigrationResult]]:
        """Run both migration passes, then drop every cached read"""
        pools = self._require_pools()
        engine = await pools.get_pool()
        with pools.track_errors():
            appearance = await run_appearance_migration(engine, force=force)
        entities = await run_entity_migration(engine, force=force)
        self.cache.flush()
        self.kv.bump_version()
        return appearance, entities

    async def migration_status(self) -> MigrationStatus:
        pools = self._require_pools()
        engine = await pools.get_pool()
        with pools.track_errors():
            return await get_migration_status(engine)

    def status(self) -> StoreStatus:
        return StoreStatus(
            backend=self.kv.repo.backend,
            ready=self.pools.is_ready if self.pools is not None else True,
            pool=self.pools.status() if self.pools is not None else None,
            cache=self.cache.stats(),
            data_version=self.kv.data_version,
        )
