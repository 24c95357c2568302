"""
Cache layer for pricings, contracts and evaluation results.

Provides in-memory and Redis backends behind a common interface, plus a
best-effort service used by the engine.
"""

from space.platform.cache.backends import MemoryCacheBackend, RedisCacheBackend
from space.platform.cache.exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyCollisionError,
)
from space.platform.cache.interfaces import CacheBackend
from space.platform.cache.keys import CacheKey
from space.platform.cache.service import CacheEffect, CacheEffectKind, CacheService

__all__ = [
    "CacheBackend",
    "CacheConnectionError",
    "CacheEffect",
    "CacheEffectKind",
    "CacheError",
    "CacheKey",
    "CacheKeyCollisionError",
    "CacheService",
    "MemoryCacheBackend",
    "RedisCacheBackend",
]
