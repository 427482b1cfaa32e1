# ==============================================================================
# Valkey Cache Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the Cache interface.

Provides:
- JSON document storage with TTL
- Raw string values (used for negative-cache markers)
- Pattern-based deletion
- Hash counters with expiry
- Sliding-window membership on sorted sets

Connection and timeout errors from redis-py are re-raised as
CacheUnavailable so callers can bypass the cache explicitly.
"""

import functools
import json
import logging
import time

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from pagestream.base import Cache, CacheUnavailable
from pagestream.utils.config import ValkeySettings, get_settings
from pagestream.utils.retry import VALKEY_RETRIES

logger = logging.getLogger(__name__)


def _unavailable_on_error(method):
    """Translate redis connection/timeout errors into CacheUnavailable."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise CacheUnavailable(f"Valkey unavailable during {method.__name__}: {e}") from e

    return wrapper


class ValkeyCache(Cache):
    """
    Valkey/Redis implementation of the Cache interface.

    Configured with:
    - Short socket timeouts so a dead cache degrades requests quickly
    - A few automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    Documents are stored as JSON strings and deserialized on retrieval.
    """

    def __init__(
        self,
        url: str | None = None,
        socket_timeout: int | None = None,
        retries: int | None = None,
        health_check_interval: int = 30,
        settings: ValkeySettings | None = None,
    ):
        """
        Initialize Valkey cache.

        Args:
            url: Valkey/Redis connection URL. If None, uses settings.
            socket_timeout: Socket timeout in seconds (default: from settings)
            retries: Number of retries for transient failures (default: VALKEY_RETRIES)
            health_check_interval: Health check interval in seconds (default: 30)
            settings: Valkey settings. If None, uses get_settings().valkey.
        """
        settings = settings or get_settings().valkey
        if url is None:
            url = settings.url
        if socket_timeout is None:
            socket_timeout = settings.socket_timeout

        retry_count = retries if retries is not None else VALKEY_RETRIES
        retry_strategy = Retry(ExponentialBackoff(cap=4, base=0.1), retries=retry_count)

        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry=retry_strategy,
            retry_on_error=[RedisTimeoutError, RedisConnectionError],
            health_check_interval=health_check_interval,
        )
        self._url = url

    @classmethod
    def from_client(cls, client: redis.Redis) -> "ValkeyCache":
        """Wrap an existing client (e.g. a fakeredis instance in tests)."""
        cache = cls.__new__(cls)
        cache._client = client
        cache._url = None
        return cache

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client for advanced operations."""
        return self._client

    @_unavailable_on_error
    def get(self, key: str) -> dict | list | None:
        value = self._client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Failed to decode JSON for key %s", key)
            return None

    @_unavailable_on_error
    def set(self, key: str, value: dict | list, ttl_seconds: int | None = None) -> None:
        json_value = json.dumps(value, default=str)
        if ttl_seconds is not None:
            self._client.setex(key, ttl_seconds, json_value)
        else:
            self._client.set(key, json_value)

    @_unavailable_on_error
    def get_raw(self, key: str) -> str | None:
        return self._client.get(key)

    @_unavailable_on_error
    def set_raw(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if ttl_seconds is not None:
            self._client.setex(key, ttl_seconds, value)
        else:
            self._client.set(key, value)

    @_unavailable_on_error
    def delete_pattern(self, pattern: str) -> int:
        keys = list(self._client.scan_iter(pattern))
        if keys:
            return self._client.delete(*keys)
        return 0

    @_unavailable_on_error
    def hash_increment(
        self, key: str, field: str, amount: int = 1, ttl_seconds: int | None = None
    ) -> int:
        pipe = self._client.pipeline()
        pipe.hincrby(key, field, amount)
        if ttl_seconds is not None:
            pipe.expire(key, ttl_seconds)
        results = pipe.execute()
        return int(results[0])

    @_unavailable_on_error
    def hash_get(self, key: str, field: str) -> int:
        value = self._client.hget(key, field)
        return int(value) if value else 0

    @_unavailable_on_error
    def window_add(self, key: str, member: str, window_seconds: int) -> None:
        now = time.time()
        pipe = self._client.pipeline()
        pipe.zadd(key, {member: now})
        pipe.zremrangebyscore(key, "-inf", now - window_seconds)
        pipe.expire(key, window_seconds)
        pipe.execute()

    @_unavailable_on_error
    def window_count(self, key: str, window_seconds: int) -> int:
        cutoff = time.time() - window_seconds
        return int(self._client.zcount(key, f"({cutoff}", "+inf"))

    def ping(self) -> bool:
        """
        Check if the cache is reachable.

        Returns:
            True if ping succeeds, False otherwise
        """
        try:
            return bool(self._client.ping())
        except (RedisConnectionError, RedisTimeoutError):
            return False

    def close(self) -> None:
        """Close the connection."""
        self._client.close()


def check_valkey_connection(settings: ValkeySettings | None = None) -> bool:
    """
    Check if Valkey is reachable.

    Uses a shorter timeout (5 seconds) since this is just a health check.

    Returns:
        True if Valkey responds to ping, False otherwise
    """
    settings = settings or get_settings().valkey
    try:
        client = redis.from_url(
            settings.url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
        client.ping()
        client.close()
        return True
    except (RedisConnectionError, RedisTimeoutError):
        return False
