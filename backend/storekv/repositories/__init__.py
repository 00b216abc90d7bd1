"""
Data Access Layer Module Initialization
"""

from storekv.repositories.kv_store_repo import KVStoreRepository

__all__ = [
    "KVStoreRepository",
]
