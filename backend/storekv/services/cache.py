"""
In-memory TTL Cache

Sits in front of the KV store read path. Each key gets a TTL from its class:
- ALL_KEY (aggregate of every key except images): shortest
- IMAGES_KEY: longest
- anything else: default

Expired entries are evicted lazily on lookup, there is no background sweep.
Process-local; separate processes may serve values up to one TTL apart.
"""

import time
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from storekv.config import Settings, get_settings
from storekv.domain.kv_store import IMAGES_KEY

# Synthetic key for the get_all aggregate
ALL_KEY = "__all__"


class CacheStats(BaseModel):
    hits: int
    misses: int
    alive: int = Field(..., alias="aliveCount")
    expired: int = Field(..., alias="expiredCount")

    model_config = ConfigDict(populate_by_name=True)


class TTLCache:
    """
    Key -> (value, expires_at) map with per-key-class TTLs.

    A cached None is a valid entry (the key is known to be absent), so
    lookups take a `default` that callers can set to a sentinel.
    """

    def __init__(
        self,
        all_ttl: float = 2.0,
        images_ttl: float = 60.0,
        default_ttl: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._all_ttl = all_ttl
        self._images_ttl = images_ttl
        self._default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TTLCache":
        settings = settings or get_settings()
        return cls(
            all_ttl=settings.CACHE_ALL_TTL_SECONDS,
            images_ttl=settings.CACHE_IMAGES_TTL_SECONDS,
            default_ttl=settings.CACHE_DEFAULT_TTL_SECONDS,
        )

    def ttl_for(self, key: str) -> float:
        if key == ALL_KEY:
            return self._all_ttl
        if key == IMAGES_KEY:
            return self._images_ttl
        return self._default_ttl

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return default
        value, expires_at = entry
        if self._clock() > expires_at:
            del self._store[key]
            self._misses += 1
            return default
        self._hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (value, self._clock() + self.ttl_for(key))

    def invalidate(self, key: str) -> None:
        """Drop a key and the aggregate, which may contain it."""
        self._store.pop(key, None)
        self._store.pop(ALL_KEY, None)

    def flush(self) -> None:
        self._store.clear()

    def stats(self) -> CacheStats:
        now = self._clock()
        alive = sum(1 for _, expires_at in self._store.values() if now <= expires_at)
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            alive=alive,
            expired=len(self._store) - alive,
        )
