"""
Test Configuration Module
"""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from storekv.config import Settings
from storekv.db.config_resolver import ConnectionConfig
from storekv.db.pool import ConnectionPoolManager
from storekv.repositories.sqlalchemy.statements import read_raw, upsert
from storekv.services.migration import _sessions


# Use in-memory database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing every file at a temporary directory"""
    return Settings(
        PG_CONFIG_FILE=str(tmp_path / "pg-config.json"),
        PG_BACKUP_FILE=str(tmp_path / "pg-env.json"),
        STORE_FILE=str(tmp_path / "store.json"),
        MIGRATE_ON_STARTUP=False,
        MIGRATE_SECRET=None,
    )


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    return ConnectionConfig(connection_string=TEST_DATABASE_URL)


@pytest_asyncio.fixture
async def pool_manager(sqlite_config, test_settings) -> AsyncGenerator[ConnectionPoolManager, None]:
    """Pool manager bound to an in-memory database"""
    manager = ConnectionPoolManager(lambda: sqlite_config, test_settings)
    yield manager
    await manager.shutdown()


@pytest_asyncio.fixture
async def async_engine(pool_manager) -> AsyncEngine:
    """Engine with the kv table created"""
    return await pool_manager.get_pool()


@pytest.fixture
def read_direct():
    """Read the stored text for a key, bypassing every cache"""

    async def _read(engine: AsyncEngine, key: str) -> Optional[str]:
        async with _sessions(engine)() as session:
            return await read_raw(session, key)

    return _read


@pytest.fixture
def seed():
    """Write stored text directly, as an older writer would have left it"""

    async def _seed(engine: AsyncEngine, **rows: str) -> None:
        async with _sessions(engine).begin() as session:
            for key, value in rows.items():
                await session.execute(upsert(session, key, value))

    return _seed
