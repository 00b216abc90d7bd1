"""
SQLAlchemy ORM Model Definitions

The key-value table is the only persisted structure:
- kv: one row per key, value stored as JSON text
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy ORM Base Class"""
    pass


class KeyValueEntry(Base):
    """
    Key-Value Table

    Values are opaque JSON text; serialization is the caller's concern.
    Rows never expire, expiry only exists in the read cache.
    """
    __tablename__ = "kv"

    # Key, sole identity
    key: Mapped[str] = mapped_column(Text, primary_key=True)
    # JSON-serialized value
    value: Mapped[str] = mapped_column(Text, nullable=False)
    # Last write time
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
