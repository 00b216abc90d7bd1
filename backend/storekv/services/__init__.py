"""
Service Layer Module Initialization
"""

from storekv.services.cache import ALL_KEY, CacheStats, TTLCache
from storekv.services.kv_service import KVStoreService
from storekv.services.migration import (
    get_migration_status,
    run_appearance_migration,
    run_entity_migration,
)

__all__ = [
    "ALL_KEY",
    "CacheStats",
    "TTLCache",
    "KVStoreService",
    "get_migration_status",
    "run_appearance_migration",
    "run_entity_migration",
]
