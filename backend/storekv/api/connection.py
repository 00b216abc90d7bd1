"""
Connection Config API

GET    /api/connection       - resolved config without the password, and its source
PUT    /api/connection       - save the primary config file and switch backends
DELETE /api/connection       - remove the primary config file and switch backends
POST   /api/connection/test  - one-off connection check, nothing is saved
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from storekv.api.deps import ContainerDep, require_migration_secret
from storekv.common.errors import BackendUnavailableError
from storekv.db.config_resolver import parse_connection_config, resolve_connection_source
from storekv.db.pool import check_connection

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/connection",
    tags=["Connection"],
    dependencies=[Depends(require_migration_secret)],
)


@router.get("")
async def get_connection(container: ContainerDep):
    return {"ok": True, **container.connection_info().model_dump(mode="json")}


@router.put("")
async def save_connection(container: ContainerDep, body: dict[str, Any] = Body(...)):
    info = await container.save_connection_config(body)
    logger.info(f"Connection config saved, backend is now {info.backend}")
    return {"ok": True, **info.model_dump(mode="json")}


@router.delete("")
async def clear_connection(container: ContainerDep):
    info = await container.clear_connection_config()
    logger.info(f"Connection config cleared, backend is now {info.backend}")
    return {"ok": True, **info.model_dump(mode="json")}


@router.post("/test")
async def try_connection(
    container: ContainerDep,
    body: Optional[dict[str, Any]] = Body(None),
):
    """
    Try a config without saving it.

    An empty body checks the currently resolved config instead.
    """
    if body:
        config = parse_connection_config(body)
    else:
        config, _ = resolve_connection_source(
            config_file=container.settings.PG_CONFIG_FILE,
            backup_file=container.settings.PG_BACKUP_FILE,
        )
        if config is None:
            raise BackendUnavailableError()
    result = await check_connection(config, container.settings)
    return result.model_dump(mode="json")
