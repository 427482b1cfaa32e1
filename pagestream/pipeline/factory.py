# ==============================================================================
# Pipeline Factory
# ==============================================================================
"""
Composition root: builds every component from settings and wires the
concrete adapters (Valkey, PostgreSQL, geo tiers) into them.

Components never open connections themselves; they receive the handles
built here.
"""

import logging
from dataclasses import dataclass, field

from pagestream.pipeline.collect import CollectPipeline
from pagestream.pipeline.entities import EntityCache
from pagestream.pipeline.geo import GeoResolutionChain, GeoTier, TierCache
from pagestream.pipeline.ingestion import IngestionGate
from pagestream.pipeline.recorder import PageviewRecorder
from pagestream.pipeline.sessions import SessionTracker
from pagestream.pipeline.stats import DailyCounters, LiveVisitors, StatsAggregator
from pagestream.utils.config import GeoSettings, IngestSettings, Settings
from pagestream.utils.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Wired components plus the resources that must be closed on shutdown."""

    collector: CollectPipeline
    aggregator: StatsAggregator
    entities: EntityCache
    geo: GeoResolutionChain
    live: LiveVisitors
    daily: DailyCounters
    _closers: list = field(default_factory=list, repr=False)

    def close(self) -> None:
        for closer in reversed(self._closers):
            closer()
        self._closers.clear()


def build_geo_tiers(settings: GeoSettings) -> tuple[list[GeoTier], list]:
    """
    Build the geo tier list in lookup order (remote, then local).

    Returns:
        (tiers, closers) where closers release tier resources
    """
    from pagestream.infrastructure.geo import GeoLite2Lookup, IpApiLookup

    tiers: list[GeoTier] = []
    closers = []

    if settings.remote_enabled:
        remote = IpApiLookup.from_settings(settings)
        tiers.append(GeoTier("remote", remote, TierCache(settings.tier_cache_size)))

    local = GeoLite2Lookup(settings.local_db_path)
    if local.available:
        tiers.append(GeoTier("local", local, TierCache(settings.tier_cache_size)))
        closers.append(local.close)

    if not tiers:
        logger.warning("No geo tiers configured; all locations will be unknown")
    return tiers, closers


def build_limiter(settings: IngestSettings) -> TokenBucketRateLimiter | None:
    """Admission control for the collect path, or None when disabled."""
    if settings.max_events_per_second <= 0:
        return None
    return TokenBucketRateLimiter(settings.max_events_per_second, burst=settings.max_burst)


def build_pipeline(settings: Settings | None = None) -> Pipeline:
    """
    Connect to Valkey and PostgreSQL and build all pipeline components.

    Args:
        settings: Application settings. If None, uses get_settings().

    Returns:
        Pipeline holding the collect pipeline, aggregator and shared components
    """
    from pagestream.infrastructure.cache import ValkeyCache
    from pagestream.infrastructure.repositories import (
        PostgreSQLAnalyticsRepository,
        PostgreSQLDatabase,
        PostgreSQLPageviewRepository,
        PostgreSQLSessionRepository,
        PostgreSQLWebsiteRepository,
    )
    from pagestream.utils.config import get_settings

    settings = settings or get_settings()

    cache = ValkeyCache(settings=settings.valkey)
    db = PostgreSQLDatabase(settings.postgres)
    db.connect()

    tiers, closers = build_geo_tiers(settings.geo)

    entities = EntityCache(cache, PostgreSQLWebsiteRepository(db))
    geo = GeoResolutionChain(tiers, cache)
    live = LiveVisitors(cache)
    daily = DailyCounters(cache)

    collector = CollectPipeline(
        gate=IngestionGate(),
        entities=entities,
        geo=geo,
        sessions=SessionTracker(cache, PostgreSQLSessionRepository(db)),
        recorder=PageviewRecorder(PostgreSQLPageviewRepository(db)),
        live=live,
        daily=daily,
        limiter=build_limiter(settings.ingest),
    )
    aggregator = StatsAggregator(cache, PostgreSQLAnalyticsRepository(db), live)

    logger.info(
        "Pipeline ready (geo tiers: %s)", ", ".join(t.name for t in tiers) or "none"
    )
    return Pipeline(
        collector=collector,
        aggregator=aggregator,
        entities=entities,
        geo=geo,
        live=live,
        daily=daily,
        _closers=[cache.close, db.close, *closers],
    )
