"""
API Module Initialization
"""

from storekv.api.connection import router as connection_router
from storekv.api.diag import router as diag_router
from storekv.api.images import router as images_router
from storekv.api.migrate import router as migrate_router
from storekv.api.store import router as store_router

__all__ = [
    "connection_router",
    "diag_router",
    "images_router",
    "migrate_router",
    "store_router",
]
