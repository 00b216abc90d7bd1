"""
KV Store API

Single action-based endpoint mirroring the KV wire contract.
"""

from fastapi import APIRouter

from storekv.api.deps import KVServiceDep
from storekv.common.errors import ValidationError
from storekv.domain.kv_store import StoreAction, StoreRequest

router = APIRouter(tags=["Store"])


def _require_key(body: StoreRequest) -> str:
    if not body.key:
        raise ValidationError(f"'key' is required for action '{body.action.value}'")
    return body.key


@router.post("/store")
async def store_action(body: StoreRequest, service: KVServiceDep):
    """
    Run one KV action

    Actions: get, set, delete, getAll, setMany, version.
    """
    if body.action == StoreAction.GET:
        return {"ok": True, "value": await service.get(_require_key(body))}

    if body.action == StoreAction.SET:
        await service.set(_require_key(body), body.value)
        return {"ok": True}

    if body.action == StoreAction.DELETE:
        await service.delete(_require_key(body))
        return {"ok": True}

    if body.action == StoreAction.GET_ALL:
        return {"ok": True, "data": await service.get_all()}

    if body.action == StoreAction.SET_MANY:
        await service.set_many(body.data or {})
        return {"ok": True}

    return {"ok": True, "version": service.data_version}
