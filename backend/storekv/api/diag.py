"""
Diagnostics API

Status snapshot and key listing for operators.
"""

from fastapi import APIRouter, Depends

from storekv.api.deps import ContainerDep, require_migration_secret

router = APIRouter(tags=["Diagnostics"])


@router.get("/diag")
async def diagnostics(container: ContainerDep):
    """Pool readiness, database round trip, cache stats and data version"""
    ping = await container.ping()
    return {
        "ok": True,
        **container.status().model_dump(mode="json", by_alias=True),
        "db": ping.model_dump(mode="json"),
    }


@router.get("/dbkeys", dependencies=[Depends(require_migration_secret)])
async def list_keys(container: ContainerDep):
    """Keys with value sizes, values are never returned"""
    entries = await container.kv.describe()
    return {"ok": True, "keys": [entry.model_dump(mode="json") for entry in entries]}
