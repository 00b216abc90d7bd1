"""
Key-Value Store Repository SQLAlchemy Implementation

Provides concrete database operation implementation for KV Store.
"""

from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select

from storekv.common.time import ensure_utc
from storekv.common.utils import parse_stored_value, serialize_value
from storekv.db.models import KeyValueEntry
from storekv.db.pool import ConnectionPoolManager
from storekv.domain.kv_store import KeyInfoModel
from storekv.repositories.kv_store_repo import KVStoreRepository
from storekv.repositories.sqlalchemy.statements import read_raw, upsert


class SQLAlchemyKVStoreRepository(KVStoreRepository):
    """
    Key-Value Store Repository SQLAlchemy Implementation

    Every operation fetches the engine from the pool manager, so a changed
    connection config takes effect on the next call.
    """

    backend = "postgresql"

    def __init__(self, pools: ConnectionPoolManager):
        """
        Initialize Repository

        Args:
            pools: Connection pool manager
        """
        self.pools = pools

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key, returns None if not found"""
        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions() as session:
                raw = await read_raw(session, key)
        if raw is None:
            return None
        return parse_stored_value(raw)

    async def set(self, key: str, value: Any) -> None:
        """Upsert a key-value pair"""
        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions.begin() as session:
                await session.execute(upsert(session, key, serialize_value(value)))

    async def delete(self, key: str) -> bool:
        """Delete a key"""
        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions.begin() as session:
                result = await session.execute(
                    delete(KeyValueEntry)
                    .where(KeyValueEntry.key == key)
                    .execution_options(synchronize_session=False)
                )
        return result.rowcount > 0

    async def get_all(self, exclude: Iterable[str] = ()) -> dict[str, Any]:
        """Get all rows except the excluded keys"""
        excluded = list(exclude)
        query = select(KeyValueEntry.key, KeyValueEntry.value)
        if excluded:
            query = query.where(KeyValueEntry.key.not_in(excluded))

        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions() as session:
                result = await session.execute(query)
                rows = result.all()
        return {row.key: parse_stored_value(row.value) for row in rows}

    async def set_many(self, entries: dict[str, Any]) -> None:
        """Upsert all entries in one transaction"""
        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions.begin() as session:
                for key, value in entries.items():
                    await session.execute(upsert(session, key, serialize_value(value)))

    async def describe(self) -> list[KeyInfoModel]:
        """List keys with value sizes"""
        sessions = await self.pools.get_session_factory()
        with self.pools.track_errors():
            async with sessions() as session:
                result = await session.execute(
                    select(
                        KeyValueEntry.key,
                        func.length(KeyValueEntry.value).label("size"),
                        KeyValueEntry.updated_at,
                    ).order_by(KeyValueEntry.key)
                )
                rows = result.all()
        return [
            KeyInfoModel(
                key=row.key,
                size=row.size or 0,
                updated_at=ensure_utc(row.updated_at),
            )
            for row in rows
        ]
