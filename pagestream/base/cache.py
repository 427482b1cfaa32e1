# ==============================================================================
# Cache Abstract Base Class
# ==============================================================================
"""
Abstract interface for key-value caching with TTL support.

This is NOT a repository (which represents domain object collections).
Cache entries are derived projections; the durable store is authoritative.

Every method raises CacheUnavailable when the backing service cannot be
reached. Callers treat that as "bypass the cache", never as a miss.

Implementations: Valkey, Redis, in-memory, etc.
"""

from abc import ABC, abstractmethod

from pagestream.core.errors import CacheUnavailable

__all__ = ["Cache", "CacheUnavailable"]


class Cache(ABC):
    """
    Generic cache interface for key-value storage with TTL support.

    Document values are dicts or lists (JSON-serializable). Implementations
    handle serialization/deserialization internally.
    """

    @abstractmethod
    def get(self, key: str) -> dict | list | None:
        """
        Get a cached document.

        Returns:
            Cached value, or None if not found
        """
        ...

    @abstractmethod
    def set(self, key: str, value: dict | list, ttl_seconds: int | None = None) -> None:
        """
        Set a cached document with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (must be JSON-serializable)
            ttl_seconds: Optional time-to-live in seconds
        """
        ...

    @abstractmethod
    def get_raw(self, key: str) -> str | None:
        """Get a raw string value (no JSON decoding)."""
        ...

    @abstractmethod
    def set_raw(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set a raw string value (no JSON encoding)."""
        ...

    @abstractmethod
    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Pattern to match (e.g., "analytics:*")

        Returns:
            Count of keys deleted
        """
        ...

    @abstractmethod
    def hash_increment(
        self, key: str, field: str, amount: int = 1, ttl_seconds: int | None = None
    ) -> int:
        """
        Increment a hash field, creating it if needed, and (re)set the key TTL.

        Returns:
            New value after increment
        """
        ...

    @abstractmethod
    def hash_get(self, key: str, field: str) -> int:
        """Read an integer hash field (0 if absent)."""
        ...

    @abstractmethod
    def window_add(self, key: str, member: str, window_seconds: int) -> None:
        """
        Record ``member`` as seen now in a sliding time window.

        Members older than ``window_seconds`` are dropped and the key expires
        ``window_seconds`` after the latest addition.
        """
        ...

    @abstractmethod
    def window_count(self, key: str, window_seconds: int) -> int:
        """Count distinct members seen within the last ``window_seconds``."""
        ...
