"""
Images API

Serves the images document separately so the main payload stays small.
"""

from fastapi import APIRouter, Response

from storekv.api.deps import KVServiceDep

router = APIRouter(tags=["Images"])


@router.get("/images")
async def get_images(response: Response, service: KVServiceDep):
    """Return the extracted images (full base64 payloads)"""
    response.headers["Cache-Control"] = "no-store"
    return {"ok": True, "images": await service.get_images()}
