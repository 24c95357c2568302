"""
Cache backends.

In-memory backend built on cachetools with per-key expiry, and a Redis
backend built on redis.asyncio. Both store JSON payloads so the collision
check compares the same representation whichever backend is configured.
"""

import json
import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TLRUCache
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from space.platform.cache.exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyCollisionError,
)
from space.platform.cache.interfaces import CacheBackend

logger = structlog.get_logger(__name__)

# Entries without a TTL live until evicted or deleted
_NO_EXPIRY = float("inf")


def _normalize_key(key: str) -> str:
    return key.lower()


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _pattern_prefix(pattern: str) -> str:
    return _normalize_key(pattern[:-1] if pattern.endswith("*") else pattern)


def _entry_expiry(_key: str, entry: tuple[str, int | None], now: float) -> float:
    ttl = entry[1]
    return now + ttl if ttl else _NO_EXPIRY


class MemoryCacheBackend(CacheBackend):
    """Process-local cache with per-key expiry."""

    def __init__(self, max_size: int = 10_000, timer: Callable[[], float] = time.monotonic):
        self._store: TLRUCache[str, tuple[str, int | None]] = TLRUCache(
            maxsize=max_size, ttu=_entry_expiry, timer=timer
        )
        self._connected = False

    async def connect(self) -> bool:
        self._connected = True
        return True

    async def disconnect(self) -> bool:
        self._connected = False
        return True

    def is_connected(self) -> bool:
        return self._connected

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(_normalize_key(key))
        if entry is None:
            return None
        return json.loads(entry[0])

    async def set(
        self, key: str, value: Any, ttl: int | None = None, overwrite: bool = False
    ) -> bool:
        key = _normalize_key(key)
        payload = _serialize(value)
        existing = self._store.get(key)
        if existing is not None and not overwrite and existing[0] != payload:
            raise CacheKeyCollisionError(key)
        self._store[key] = (payload, ttl)
        return True

    async def delete(self, key: str) -> bool:
        return self._store.pop(_normalize_key(key), None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        prefix = _pattern_prefix(pattern)
        matching = [key for key in list(self._store.keys()) if key.startswith(prefix)]
        for key in matching:
            self._store.pop(key, None)
        return len(matching)

    async def exists(self, key: str) -> bool:
        return _normalize_key(key) in self._store

    async def clear(self) -> bool:
        self._store.clear()
        return True


class RedisCacheBackend(CacheBackend):
    """
    Redis-backed cache.

    Values are stored as JSON strings. A pre-built client (for example a
    fakeredis instance) can be injected; otherwise one is created from the
    URL on ``connect``.
    """

    def __init__(
        self,
        url: str | None = None,
        client: Redis | None = None,
        max_connections: int = 50,
        socket_timeout: int = 5,
    ):
        self.url = url
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self._client = client
        self._connected = False

    @retry(
        retry=retry_if_exception_type(RedisConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )
    async def _ping(self) -> None:
        await self.client.ping()

    async def connect(self) -> bool:
        if self._client is None:
            if not self.url:
                raise CacheConnectionError("Redis URL is required to create a client")
            self._client = Redis.from_url(
                self.url,
                decode_responses=True,
                max_connections=self.max_connections,
                socket_timeout=self.socket_timeout,
            )
        try:
            await self._ping()
        except RedisError as e:
            logger.error("cache.redis.connect_failed", url=self.url, error=str(e))
            raise CacheConnectionError(f"Could not connect to Redis: {e}") from e

        self._connected = True
        logger.info("cache.redis.connected", url=self.url)
        return True

    async def disconnect(self) -> bool:
        if self._client is not None:
            await self._client.aclose()
        self._connected = False
        return True

    def is_connected(self) -> bool:
        return self._connected

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise CacheConnectionError("Redis cache backend is not connected")
        return self._client

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.client.get(_normalize_key(key))
        except RedisError as e:
            raise CacheError(f"Redis get failed: {e}") from e
        if raw is None:
            return None
        return json.loads(raw)

    async def set(
        self, key: str, value: Any, ttl: int | None = None, overwrite: bool = False
    ) -> bool:
        key = _normalize_key(key)
        payload = _serialize(value)
        try:
            if not overwrite:
                existing = await self.client.get(key)
                if existing is not None and existing != payload:
                    raise CacheKeyCollisionError(key)
            await self.client.set(key, payload, ex=ttl)
        except RedisError as e:
            raise CacheError(f"Redis set failed: {e}") from e
        return True

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(_normalize_key(key)))
        except RedisError as e:
            raise CacheError(f"Redis delete failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        match = _pattern_prefix(pattern) + "*"
        try:
            keys = [key async for key in self.client.scan_iter(match=match)]
            if not keys:
                return 0
            return int(await self.client.delete(*keys))
        except RedisError as e:
            raise CacheError(f"Redis pattern delete failed: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(_normalize_key(key)))
        except RedisError as e:
            raise CacheError(f"Redis exists failed: {e}") from e

    async def clear(self) -> bool:
        try:
            await self.client.flushdb()
        except RedisError as e:
            raise CacheError(f"Redis clear failed: {e}") from e
        return True
