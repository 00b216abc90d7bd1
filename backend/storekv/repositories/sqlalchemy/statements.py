"""
Dialect-aware statements for the kv table

Upserts need the dialect's own INSERT construct; PostgreSQL and SQLite are supported.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from storekv.db.models import KeyValueEntry

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _insert_for(session: AsyncSession):
    dialect = session.bind.dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise ValueError(f"Unsupported dialect for kv upsert: {dialect}") from None


def upsert(session: AsyncSession, key: str, value: str):
    """INSERT ... ON CONFLICT(key) DO UPDATE SET value, updated_at"""
    stmt = _insert_for(session)(KeyValueEntry).values(key=key, value=value, updated_at=func.now())
    return stmt.on_conflict_do_update(
        index_elements=["key"],
        set_={"value": stmt.excluded["value"], "updated_at": func.now()},
    )


def insert_if_absent(session: AsyncSession, key: str, value: str):
    """INSERT ... ON CONFLICT(key) DO NOTHING"""
    stmt = _insert_for(session)(KeyValueEntry).values(key=key, value=value, updated_at=func.now())
    return stmt.on_conflict_do_nothing(index_elements=["key"])


def update_value(key: str, value: str):
    return (
        update(KeyValueEntry)
        .where(KeyValueEntry.key == key)
        .values(value=value, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )


async def read_raw(session: AsyncSession, key: str) -> Optional[str]:
    """Stored text for a key, None when the row is absent"""
    result = await session.execute(
        select(KeyValueEntry.value).where(KeyValueEntry.key == key)
    )
    return result.scalar_one_or_none()
