"""
Migration API

GET  /api/migrate  - status only, nothing is changed
POST /api/migrate  - run the migration, `force` re-runs a finished one
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storekv.api.deps import ContainerDep, require_migration_secret

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/migrate",
    tags=["Migration"],
    dependencies=[Depends(require_migration_secret)],
)


class MigrateRequest(BaseModel):
    force: bool = Field(False, description="Re-run even if already done")


@router.get("")
async def migration_status(container: ContainerDep):
    status = await container.migration_status()
    return {"ok": True, **status.model_dump(mode="json")}


@router.post("")
async def run_migration(container: ContainerDep, body: MigrateRequest | None = None):
    force = body.force if body else False
    logger.info(f"Migration triggered (force={force})")
    appearance, entities = await container.run_migrations(force=force)
    return {
        "ok": True,
        "appearance": appearance.model_dump(mode="json", by_alias=True, exclude_none=True),
        "entities": [
            result.model_dump(mode="json", by_alias=True, exclude_none=True)
            for result in entities
        ],
    }
