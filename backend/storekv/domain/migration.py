"""
Migration Domain Model

Result DTOs for the image extraction migration.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MigrationReason(str, Enum):
    ALREADY_DONE = "already_done"
    NO_SOURCE = "no_source"
    NO_IMAGES_FOUND = "no_images_found"
    NO_DATA = "no_data"
    NOT_ARRAY = "not_array"
    PARSE_ERROR = "parse_error"


class AppearanceMigrationResult(BaseModel):
    """Outcome of the appearance pass"""

    skipped: bool = Field(..., description="True when nothing was attempted")
    reason: Optional[MigrationReason] = Field(None, description="Why the pass skipped or found nothing")
    moved: list[str] = Field(default_factory=list, description="Dotted labels of extracted fields")
    saved_kb: int = Field(0, alias="savedKB", description="Size of extracted payloads in KB")

    model_config = ConfigDict(populate_by_name=True)


class EntityMigrationResult(BaseModel):
    """Outcome of the entity pass for one collection"""

    key: str = Field(..., description="Collection key")
    skipped: Optional[bool] = None
    reason: Optional[MigrationReason] = None
    moved: Optional[int] = Field(None, description="Number of extracted images")
    saved_kb: Optional[int] = Field(None, alias="savedKB")
    error: Optional[str] = Field(None, description="Failure message, collection left untouched")

    model_config = ConfigDict(populate_by_name=True)


class MigrationStatus(BaseModel):
    """Read-only view of the appearance migration progress"""

    status: str = Field(..., description="not_started / empty_stub / partial / done")
    appearance_kb: Optional[int] = None
    images_kb: Optional[int] = None
    image_keys: list[str] = Field(default_factory=list)
    embedded_fields: list[str] = Field(
        default_factory=list, description="Fields still embedding payloads"
    )
    needs_migration: bool = True
