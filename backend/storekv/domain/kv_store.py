"""
Key-Value Store Domain Model

Defines well-known keys and the KV wire contract DTOs.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

# Appearance settings (colors, texts, layout) with images replaced by placeholders
APPEARANCE_KEY = "cm_appearance"
# Images extracted from the appearance document
IMAGES_KEY = "cm_images"


class StoreAction(str, Enum):
    GET = "get"
    SET = "set"
    DELETE = "delete"
    GET_ALL = "getAll"
    SET_MANY = "setMany"
    VERSION = "version"


class StoreRequest(BaseModel):
    """KV wire request"""

    action: StoreAction = Field(..., description="Operation to perform")
    key: Optional[str] = Field(None, description="Key for get/set/delete")
    value: Any = Field(None, description="Value for set, JSON text or native JSON")
    data: Optional[dict[str, Any]] = Field(None, description="Entries for setMany")


class KeyInfoModel(BaseModel):
    """Key listing entry, value omitted"""

    key: str = Field(..., description="Key")
    size: int = Field(..., description="Serialized value length in characters")
    updated_at: Optional[datetime] = Field(None, description="Update Time")
