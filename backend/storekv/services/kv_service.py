"""
Key-Value Store Service

Cached access to whichever KV repository backs the process. Reads go
through the TTL cache; every mutation invalidates the affected keys and
advances the data version so long-lived clients can notice changes.
"""

import logging
import time
from typing import Any, Callable, Optional

from storekv.common.utils import parse_stored_value
from storekv.domain.kv_store import APPEARANCE_KEY, IMAGES_KEY, KeyInfoModel
from storekv.repositories.kv_store_repo import KVStoreRepository
from storekv.services.cache import ALL_KEY, TTLCache
from storekv.services.image_rules import extract_appearance_images

logger = logging.getLogger(__name__)

_MISSING = object()


class KVStoreService:
    """
    KV Store Service

    Writing the appearance document (as a dict or JSON text) moves any embedded images into
    the images document before anything is persisted.
    """

    def __init__(
        self,
        repo: KVStoreRepository,
        cache: TTLCache,
        clock: Callable[[], float] = time.time,
        initial_version: int = 0,
    ):
        self.repo = repo
        self.cache = cache
        self._clock = clock
        self._data_version = max(self._now_ms(), initial_version + 1)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def data_version(self) -> int:
        return self._data_version

    def bump_version(self) -> int:
        """Advance the data version, strictly increasing"""
        self._data_version = max(self._now_ms(), self._data_version + 1)
        return self._data_version

    async def get(self, key: str) -> Optional[Any]:
        cached = self.cache.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = await self.repo.get(key)
        self.cache.set(key, value)
        return value

    async def get_all(self) -> dict[str, Any]:
        """Every key except the images document"""
        cached = self.cache.get(ALL_KEY, _MISSING)
        if cached is not _MISSING:
            return cached
        data = await self.repo.get_all(exclude=(IMAGES_KEY,))
        self.cache.set(ALL_KEY, data)
        return data

    async def get_images(self) -> dict[str, Any]:
        images = await self.get(IMAGES_KEY)
        return images if isinstance(images, dict) else {}

    async def set(self, key: str, value: Any) -> None:
        if key == APPEARANCE_KEY:
            await self.set_many({key: value})
            return
        await self.repo.set(key, value)
        self.cache.invalidate(key)
        self.bump_version()

    async def delete(self, key: str) -> bool:
        deleted = await self.repo.delete(key)
        self.cache.invalidate(key)
        self.bump_version()
        return deleted

    async def set_many(self, entries: dict[str, Any]) -> None:
        entries = await self._split_appearance_images(entries)
        await self.repo.set_many(entries)
        for key in entries:
            self.cache.invalidate(key)
        self.cache.invalidate(ALL_KEY)
        self.bump_version()

    async def describe(self) -> list[KeyInfoModel]:
        return await self.repo.describe()

    async def _split_appearance_images(self, entries: dict[str, Any]) -> dict[str, Any]:
        appearance = entries.get(APPEARANCE_KEY)
        if isinstance(appearance, str):
            # JSON text is accepted on the wire as well as native values
            appearance = parse_stored_value(appearance)
        if not isinstance(appearance, dict):
            return entries

        base_images = parse_stored_value(entries.get(IMAGES_KEY))
        if not isinstance(base_images, dict):
            base_images = await self.get_images()
        rewritten, images, moved = extract_appearance_images(appearance, base_images)
        if not moved:
            return entries

        logger.info(f"Moved {len(moved)} embedded images out of {APPEARANCE_KEY}: {', '.join(moved)}")
        return {**entries, APPEARANCE_KEY: rewritten, IMAGES_KEY: images}
