"""Storage contract shared by the memory and Redis cache backends."""

from abc import ABC, abstractmethod
from typing import Any


class CacheBackend(ABC):
    """Key/value storage for services, pricings, contracts and evaluations.

    Values are JSON-compatible documents. Keys are case-insensitive:
    implementations lower-case every key before touching storage.
    ``set`` without ``overwrite`` raises ``CacheKeyCollisionError`` rather
    than replacing a different stored value; writing an equal value is a
    no-op success.
    """

    @abstractmethod
    async def connect(self) -> bool:
        pass

    @abstractmethod
    async def disconnect(self) -> bool:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Stored document, or ``None`` when missing or expired."""

    @abstractmethod
    async def set(
        self, key: str, value: Any, ttl: int | None = None, overwrite: bool = False
    ) -> bool:
        """Store ``value``; ``ttl`` in seconds, ``None`` keeps it until evicted.

        Raises:
            CacheKeyCollisionError: If a different value is stored and
                ``overwrite`` is false
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key; ``True`` when it existed."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key starting with the prefix of a ``prefix*`` pattern.

        Returns the number of keys removed.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> bool:
        pass
