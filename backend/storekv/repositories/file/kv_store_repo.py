"""
Key-Value Store Repository Flat-File Implementation

Keeps the whole keyspace as one JSON object on disk. Used when no
relational connection config resolves.

Mutations are serialized through one asyncio lock per repository, which
prevents lost updates between coroutines of this process only.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from storekv.common.utils import parse_stored_value, serialize_value
from storekv.domain.kv_store import KeyInfoModel
from storekv.repositories.kv_store_repo import KVStoreRepository

logger = logging.getLogger(__name__)


class FileKVStoreRepository(KVStoreRepository):
    """
    Key-Value Store Repository Flat-File Implementation
    """

    backend = "file"

    def __init__(self, path: Path | str):
        """
        Initialize Repository

        Args:
            path: JSON file holding the keyspace
        """
        self.path = Path(path)
        self._write_lock = asyncio.Lock()

    def _read_sync(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.warning(f"Store file {self.path} is not valid JSON, treating as empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_sync(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def _read(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync)

    async def _mutate(self, change) -> Any:
        """Read-modify-write the file while holding the write lock"""
        async with self._write_lock:
            data = await self._read()
            outcome = change(data)
            await asyncio.to_thread(self._write_sync, data)
            return outcome

    @staticmethod
    def _normalize(value: Any) -> Any:
        # Same observable value as a round trip through the kv table
        return parse_stored_value(serialize_value(value))

    async def get(self, key: str) -> Optional[Any]:
        data = await self._read()
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        stored = self._normalize(value)

        def change(data: dict[str, Any]) -> None:
            data[key] = stored

        await self._mutate(change)

    async def delete(self, key: str) -> bool:
        def change(data: dict[str, Any]) -> bool:
            if key not in data:
                return False
            del data[key]
            return True

        return await self._mutate(change)

    async def get_all(self, exclude: Iterable[str] = ()) -> dict[str, Any]:
        excluded = set(exclude)
        data = await self._read()
        return {key: value for key, value in data.items() if key not in excluded}

    async def set_many(self, entries: dict[str, Any]) -> None:
        # Normalize up front so a bad value fails before the file is touched
        stored = {key: self._normalize(value) for key, value in entries.items()}

        def change(data: dict[str, Any]) -> None:
            data.update(stored)

        await self._mutate(change)

    async def describe(self) -> list[KeyInfoModel]:
        data = await self._read()
        return [
            KeyInfoModel(key=key, size=len(serialize_value(data[key])))
            for key in sorted(data)
        ]
