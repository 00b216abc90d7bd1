"""
Key-Value Store Repository Interface

Defines the data access interface shared by the relational and flat-file backends.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from storekv.domain.kv_store import KeyInfoModel


class KVStoreRepository(ABC):
    """Key-Value Store Repository Interface"""

    backend: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get value by key

        Args:
            key: The key to look up

        Returns:
            Deserialized value, None if the key doesn't exist
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Set a key-value pair

        If the key already exists, it will be updated.

        Args:
            key: The key to set
            value: JSON text or a JSON-serializable value
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key

        Returns:
            True if deleted, False if key didn't exist
        """
        pass

    @abstractmethod
    async def get_all(self, exclude: Iterable[str] = ()) -> dict[str, Any]:
        """
        Get every key-value pair

        Args:
            exclude: Keys left out of the result

        Returns:
            Mapping of key to deserialized value
        """
        pass

    @abstractmethod
    async def set_many(self, entries: dict[str, Any]) -> None:
        """
        Set several key-value pairs atomically

        Either all entries are written or none.
        """
        pass

    @abstractmethod
    async def describe(self) -> list[KeyInfoModel]:
        """
        List keys with their sizes, ordered by key
        """
        pass
