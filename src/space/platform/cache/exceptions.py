"""Cache-related exceptions."""


class CacheError(Exception):
    """Base exception for cache operations."""

    pass


class CacheConnectionError(CacheError):
    """Raised when cache backend connection fails."""

    pass


class CacheKeyCollisionError(CacheError):
    """Raised when a non-overwriting set would change an existing value."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Cache key collision on '{key}': a different value is already stored")
