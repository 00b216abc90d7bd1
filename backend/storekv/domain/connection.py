"""
Connection Domain Model

DTOs for the connection config admin endpoints and database checks.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ConfigSource(str, Enum):
    DATABASE_URL = "database_url"
    ENV = "env"
    FILE = "file"
    BACKUP = "backup"


class ConnectionInfo(BaseModel):
    """Resolved connection config with credentials removed"""

    config: Optional[dict[str, Any]] = Field(None, description="Config without password")
    source: Optional[ConfigSource] = Field(None, description="Where the config came from")
    backend: Optional[str] = Field(None, description="Backend in use after resolution")


class ConnectionCheck(BaseModel):
    """Outcome of a one-off connection attempt"""

    ok: bool
    version: Optional[str] = None
    database: Optional[str] = None
    size: Optional[str] = Field(None, description="Human-readable database size (PostgreSQL only)")
    error: Optional[str] = None


class DatabasePing(BaseModel):
    """Round trip through the shared pool"""

    ping_ms: Optional[float] = Field(None, description="Latency of SELECT 1 in milliseconds")
    error: Optional[str] = None
