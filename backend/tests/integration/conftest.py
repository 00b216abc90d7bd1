"""
HTTP test fixtures
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from storekv.api.deps import get_container
from storekv.config import get_settings
from storekv.container import StoreContainer
from storekv.main import app


@pytest_asyncio.fixture
async def sql_container(test_settings, sqlite_config) -> AsyncGenerator[StoreContainer, None]:
    container = StoreContainer(settings=test_settings, resolver=lambda: sqlite_config)
    await container.init()
    yield container
    await container.shutdown()


@pytest_asyncio.fixture
async def file_container(test_settings) -> AsyncGenerator[StoreContainer, None]:
    container = StoreContainer(settings=test_settings, resolver=lambda: None)
    await container.init()
    yield container
    await container.shutdown()


@pytest.fixture
def make_client():
    """Client factory bound to a given container and client address"""

    def _make(container: StoreContainer, client_host: str = "127.0.0.1") -> AsyncClient:
        app.dependency_overrides[get_container] = lambda: container
        transport = ASGITransport(app=app, client=(client_host, 51234))
        return AsyncClient(transport=transport, base_url="http://test")

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def migrate_secret(monkeypatch):
    """Configure MIGRATE_SECRET for the duration of a test"""
    monkeypatch.setenv("MIGRATE_SECRET", "s3cret")
    get_settings.cache_clear()
    yield "s3cret"
    monkeypatch.delenv("MIGRATE_SECRET", raising=False)
    get_settings.cache_clear()


@pytest_asyncio.fixture(params=["postgresql", "file"])
async def any_container(request, test_settings, sqlite_config) -> AsyncGenerator[StoreContainer, None]:
    """Container on each backend in turn"""
    config = sqlite_config if request.param == "postgresql" else None
    container = StoreContainer(settings=test_settings, resolver=lambda: config)
    await container.init()
    yield container
    await container.shutdown()
