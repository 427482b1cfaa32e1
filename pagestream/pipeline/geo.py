# ==============================================================================
# Geo Resolution Chain
# ==============================================================================
"""
Tiered IP -> location resolution.

Lookup order for a client IP:

1. Private, loopback and link-local addresses return None immediately; no
   cache or tier is consulted and nothing is cached.
2. Shared cache entry geo:{ip}: a location (kept 24h) or an explicit
   negative marker (kept 1h). A cached negative is returned as None without
   touching any tier.
3. Tiers in declared order (remote first, then local). Each tier has its own
   bounded in-process cache of positive results, and a failing tier is
   logged and skipped.

The outcome of step 3 is written back to the shared cache.
"""

import logging
import threading
from dataclasses import dataclass, field

from pagestream.base.cache import Cache
from pagestream.base.geo import GeoLookup
from pagestream.core.errors import ResolutionFailure
from pagestream.core.models import GeoLocation
from pagestream.core.rules import is_private_ip, private_ip_patterns
from pagestream.pipeline.guard import cache_read_raw, cache_write_raw
from pagestream.pipeline.keys import (
    GEO_NEGATIVE_MARKER,
    GEO_NEGATIVE_TTL_SECONDS,
    GEO_TTL_SECONDS,
    geo_key,
)

logger = logging.getLogger(__name__)

DEFAULT_TIER_CACHE_SIZE = 50_000


class TierCache:
    """
    Bounded in-memory cache of positive lookups for one tier.

    When the size exceeds ``max_size`` the oldest quarter of entries, by
    insertion order, is dropped. Reads do not refresh an entry's position.
    """

    def __init__(self, max_size: int = DEFAULT_TIER_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: dict[str, GeoLocation] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, ip: str) -> bool:
        return ip in self._entries

    def get(self, ip: str) -> GeoLocation | None:
        return self._entries.get(ip)

    def put(self, ip: str, location: GeoLocation) -> None:
        with self._lock:
            self._entries[ip] = location
            if len(self._entries) > self.max_size:
                self._evict()

    def _evict(self) -> None:
        count = max(len(self._entries) // 4, 1)
        for ip in list(self._entries)[:count]:
            del self._entries[ip]
        logger.debug("Evicted %d geo cache entries", count)


@dataclass
class GeoTier:
    """
    A named lookup strategy with its own result cache.

    Any error raised by the lookup surfaces as ResolutionFailure, so one
    broken tier never escapes the chain.
    """

    name: str
    lookup: GeoLookup
    cache: TierCache = field(default_factory=TierCache)

    def resolve(self, ip: str) -> GeoLocation | None:
        hit = self.cache.get(ip)
        if hit is not None:
            return hit
        try:
            location = self.lookup.resolve(ip)
        except ResolutionFailure:
            raise
        except Exception as e:
            raise ResolutionFailure(self.name, ip, e) from e
        if location is not None:
            self.cache.put(ip, location)
        return location


class GeoResolutionChain:
    """Resolve client IPs through the shared cache and the tier list."""

    def __init__(self, tiers: list[GeoTier], cache: Cache):
        """
        Args:
            tiers: Tiers to try, in order
            cache: Shared cache for per-IP results (positive and negative)
        """
        self._tiers = list(tiers)
        self._cache = cache
        self._private_patterns = private_ip_patterns()

    @property
    def tiers(self) -> list[GeoTier]:
        return list(self._tiers)

    def resolve(self, ip: str) -> GeoLocation | None:
        """Resolve ``ip`` to a location, or None if it is private or unresolvable."""
        if is_private_ip(ip, self._private_patterns):
            return None

        key = geo_key(ip)
        available, cached = cache_read_raw(self._cache, key)
        if cached == GEO_NEGATIVE_MARKER:
            logger.debug("Geo negative cache hit for %s", ip)
            return None
        if cached:
            try:
                return GeoLocation.model_validate_json(cached)
            except ValueError:
                logger.warning("Discarding unreadable geo cache entry for %s", ip)

        location = self.resolve_uncached(ip)

        if available:
            if location is not None:
                cache_write_raw(self._cache, key, location.model_dump_json(), GEO_TTL_SECONDS)
            else:
                cache_write_raw(self._cache, key, GEO_NEGATIVE_MARKER, GEO_NEGATIVE_TTL_SECONDS)
        return location

    def resolve_uncached(self, ip: str) -> GeoLocation | None:
        """Walk the tiers, skipping the shared cache."""
        for tier in self._tiers:
            try:
                location = tier.resolve(ip)
            except ResolutionFailure as e:
                logger.warning("Geo tier %s failed: %s", tier.name, e)
                continue
            if location is not None:
                logger.debug("Resolved %s via %s tier", ip, tier.name)
                return location
        return None
