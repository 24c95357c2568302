"""
Best-effort cache service.

Business flows never fail because of the cache: every operation here logs
backend errors and reports failure through its return value. Collisions on
non-overwriting writes are logged as errors since they point at key bugs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from space.platform.cache.exceptions import CacheError, CacheKeyCollisionError
from space.platform.cache.interfaces import CacheBackend

logger = structlog.get_logger(__name__)


class CacheEffectKind(str, Enum):
    """Kinds of deferred cache mutations."""

    SET = "set"
    DELETE = "delete"
    DELETE_PATTERN = "delete_pattern"


@dataclass(frozen=True)
class CacheEffect:
    """A cache mutation computed by pure code and applied later."""

    kind: CacheEffectKind
    key: str
    value: Any = None
    ttl: int | None = None
    overwrite: bool = False

    @classmethod
    def set(
        cls, key: str, value: Any, ttl: int | None = None, overwrite: bool = False
    ) -> "CacheEffect":
        return cls(CacheEffectKind.SET, key, value=value, ttl=ttl, overwrite=overwrite)

    @classmethod
    def delete(cls, key: str) -> "CacheEffect":
        return cls(CacheEffectKind.DELETE, key)

    @classmethod
    def delete_pattern(cls, pattern: str) -> "CacheEffect":
        return cls(CacheEffectKind.DELETE_PATTERN, pattern)


class CacheService:
    """Wraps a backend with logging, metrics and swallow-on-error semantics."""

    def __init__(self, backend: CacheBackend, key_prefix: str = "", default_ttl: int = 300):
        self.backend = backend
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0
        self.errors = 0

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        try:
            value = await self.backend.get(self._key(key))
        except CacheError as e:
            self.errors += 1
            logger.error("Cache get error", key=key, error=str(e))
            return None

        if value is None:
            self.misses += 1
            logger.debug("Cache miss", key=key)
        else:
            self.hits += 1
            logger.debug("Cache hit", key=key)
        return value

    async def set(
        self, key: str, value: Any, ttl: int | None = None, overwrite: bool = False
    ) -> bool:
        try:
            await self.backend.set(
                self._key(key), value, ttl=ttl or self.default_ttl, overwrite=overwrite
            )
        except CacheKeyCollisionError as e:
            self.errors += 1
            logger.error("Cache key collision", key=key, error=str(e))
            return False
        except CacheError as e:
            self.errors += 1
            logger.error("Cache set error", key=key, error=str(e))
            return False

        logger.debug("Cache set", key=key, ttl=ttl)
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await self.backend.delete(self._key(key))
        except CacheError as e:
            self.errors += 1
            logger.error("Cache delete error", key=key, error=str(e))
            return False

    async def delete_pattern(self, pattern: str) -> int:
        try:
            count = await self.backend.delete_pattern(self._key(pattern))
        except CacheError as e:
            self.errors += 1
            logger.error("Cache invalidation error", pattern=pattern, error=str(e))
            return 0

        logger.debug("Cache invalidation", pattern=pattern, count=count)
        return count

    async def apply(self, effects: list[CacheEffect]) -> None:
        """Apply deferred effects in order, ignoring individual failures."""
        for effect in effects:
            if effect.kind is CacheEffectKind.SET:
                await self.set(effect.key, effect.value, ttl=effect.ttl, overwrite=effect.overwrite)
            elif effect.kind is CacheEffectKind.DELETE:
                await self.delete(effect.key)
            else:
                await self.delete_pattern(effect.key)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "hit_rate": (self.hits / total) * 100 if total else 0.0,
        }
