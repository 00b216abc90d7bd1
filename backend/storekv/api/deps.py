"""
API Dependency Injection Module

Provides the dependencies FastAPI routes use.
"""

import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, Query, Request

from storekv.common.errors import ForbiddenError
from storekv.config import get_settings
from storekv.container import StoreContainer
from storekv.services.kv_service import KVStoreService

LOOPBACK_HOSTS = {"127.0.0.1", "::1", "localhost"}


def get_container(request: Request) -> StoreContainer:
    """Process-wide container created in the application lifespan"""
    return request.app.state.container


ContainerDep = Annotated[StoreContainer, Depends(get_container)]


def get_kv_service(container: ContainerDep) -> KVStoreService:
    return container.kv


KVServiceDep = Annotated[KVStoreService, Depends(get_kv_service)]


# ============ Auth Dependencies ============

async def require_migration_secret(
    request: Request,
    x_migrate_secret: Optional[str] = Header(None, alias="x-migrate-secret"),
    secret: Optional[str] = Query(None, description="Shared secret"),
) -> None:
    """
    Migration trigger gate

    When MIGRATE_SECRET is set the caller must present it, otherwise only
    loopback clients are accepted.
    """
    expected = get_settings().MIGRATE_SECRET
    if expected:
        provided = x_migrate_secret or secret or ""
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            raise ForbiddenError("Invalid migration secret", code="invalid_secret")
        return

    client_host = request.client.host if request.client else None
    if client_host not in LOOPBACK_HOSTS:
        raise ForbiddenError(
            "Migration trigger is restricted to loopback clients when no secret is configured",
            code="loopback_only",
        )
