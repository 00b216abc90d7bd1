"""
Flat-File Repository Implementation Module Initialization
"""

from storekv.repositories.file.kv_store_repo import FileKVStoreRepository

__all__ = [
    "FileKVStoreRepository",
]
