"""
Database Module Initialization
"""

from storekv.db.config_resolver import ConnectionConfig, TLSOptions, resolve_connection_config
from storekv.db.models import Base, KeyValueEntry
from storekv.db.pool import ConnectionPoolManager, PoolState, PoolStatus

__all__ = [
    "ConnectionConfig",
    "TLSOptions",
    "resolve_connection_config",
    "Base",
    "KeyValueEntry",
    "ConnectionPoolManager",
    "PoolState",
    "PoolStatus",
]
