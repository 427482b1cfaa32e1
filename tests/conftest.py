# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache instances
- In-memory repositories sharing one backing store
- A fully wired CollectPipeline and StatsAggregator over both
"""

import fakeredis
import pytest

from pagestream.infrastructure.cache import ValkeyCache
from pagestream.pipeline import (
    CollectPipeline,
    DailyCounters,
    EntityCache,
    GeoResolutionChain,
    GeoTier,
    IngestionGate,
    LiveVisitors,
    PageviewRecorder,
    SessionTracker,
    StatsAggregator,
    TierCache,
)
from tests.fakes import (
    AU,
    NOW,
    OTHER_PUBLIC_IP,
    PUBLIC_IP,
    US,
    InMemoryAnalyticsRepository,
    InMemoryPageviewRepository,
    InMemorySessionRepository,
    InMemoryStore,
    InMemoryWebsiteRepository,
    StaticGeoLookup,
)


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real ValkeyCache behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache wrapping fakeredis, exercising the full ValkeyCache API."""
    return ValkeyCache.from_client(fake_redis)


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def website_repo(store):
    return InMemoryWebsiteRepository(store)


@pytest.fixture()
def session_repo(store):
    return InMemorySessionRepository(store)


@pytest.fixture()
def pageview_repo(store):
    return InMemoryPageviewRepository(store)


@pytest.fixture()
def analytics_repo(store):
    return InMemoryAnalyticsRepository(store)


@pytest.fixture()
def geo_lookup():
    """Single geo tier that knows two public addresses."""
    return StaticGeoLookup({PUBLIC_IP: US, OTHER_PUBLIC_IP: AU})


@pytest.fixture()
def geo_chain(fake_cache, geo_lookup):
    return GeoResolutionChain([GeoTier("static", geo_lookup, TierCache(100))], fake_cache)


@pytest.fixture()
def live(fake_cache):
    return LiveVisitors(fake_cache)


@pytest.fixture()
def daily(fake_cache):
    return DailyCounters(fake_cache)


@pytest.fixture()
def collector(fake_cache, website_repo, session_repo, pageview_repo, geo_chain, live, daily):
    """A CollectPipeline over fakeredis and the in-memory store, without rate limiting."""
    return CollectPipeline(
        gate=IngestionGate(),
        entities=EntityCache(fake_cache, website_repo),
        geo=geo_chain,
        sessions=SessionTracker(fake_cache, session_repo),
        recorder=PageviewRecorder(pageview_repo),
        live=live,
        daily=daily,
    )


@pytest.fixture()
def aggregator(fake_cache, analytics_repo, live):
    """A StatsAggregator whose clock is fixed one hour after NOW."""
    return StatsAggregator(
        fake_cache,
        analytics_repo,
        live,
        clock=lambda: NOW.replace(hour=13),
    )
