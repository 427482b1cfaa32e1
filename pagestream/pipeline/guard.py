# ==============================================================================
# Cache Degradation Helpers
# ==============================================================================
"""
Wrappers that turn CacheUnavailable into an explicit bypass.

A read returns ``(available, value)`` so callers can tell "cache down" from
"cache miss": after a failed read the caller serves from the store and skips
the write-back, instead of repopulating a cache it cannot reach.
"""

import logging
from typing import Any

from pagestream.base.cache import Cache, CacheUnavailable

logger = logging.getLogger(__name__)


def cache_read(cache: Cache, key: str) -> tuple[bool, Any]:
    """Read a JSON document. Returns (cache_available, value_or_None)."""
    try:
        return True, cache.get(key)
    except CacheUnavailable as e:
        logger.warning("Cache unavailable, bypassing read of %s: %s", key, e)
        return False, None


def cache_read_raw(cache: Cache, key: str) -> tuple[bool, str | None]:
    """Read a raw string. Returns (cache_available, value_or_None)."""
    try:
        return True, cache.get_raw(key)
    except CacheUnavailable as e:
        logger.warning("Cache unavailable, bypassing read of %s: %s", key, e)
        return False, None


def cache_write(cache: Cache, key: str, value: dict | list, ttl_seconds: int) -> bool:
    """Write a JSON document. Returns False if the cache was unreachable."""
    try:
        cache.set(key, value, ttl_seconds)
        return True
    except CacheUnavailable as e:
        logger.warning("Cache unavailable, skipping write of %s: %s", key, e)
        return False


def cache_write_raw(cache: Cache, key: str, value: str, ttl_seconds: int) -> bool:
    """Write a raw string. Returns False if the cache was unreachable."""
    try:
        cache.set_raw(key, value, ttl_seconds)
        return True
    except CacheUnavailable as e:
        logger.warning("Cache unavailable, skipping write of %s: %s", key, e)
        return False
