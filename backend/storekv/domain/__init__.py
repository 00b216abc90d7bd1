"""
Domain Model Module Initialization
"""

from storekv.domain.connection import (
    ConfigSource,
    ConnectionCheck,
    ConnectionInfo,
    DatabasePing,
)
from storekv.domain.kv_store import (
    APPEARANCE_KEY,
    IMAGES_KEY,
    KeyInfoModel,
    StoreAction,
    StoreRequest,
)
from storekv.domain.migration import (
    AppearanceMigrationResult,
    EntityMigrationResult,
    MigrationReason,
    MigrationStatus,
)

__all__ = [
    "ConfigSource",
    "ConnectionCheck",
    "ConnectionInfo",
    "DatabasePing",
    "APPEARANCE_KEY",
    "IMAGES_KEY",
    "KeyInfoModel",
    "StoreAction",
    "StoreRequest",
    "AppearanceMigrationResult",
    "EntityMigrationResult",
    "MigrationReason",
    "MigrationStatus",
]
