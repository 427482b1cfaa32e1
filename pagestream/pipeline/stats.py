# ==============================================================================
# Stats Aggregation and Live Visitors
# ==============================================================================
"""
Read-side rollups and the lightweight counters kept on the write path.

- LiveVisitors: per-website sliding 5-minute window of active session ids
- DailyCounters: per-website, per-day pageview counters (expire after 48h)
- StatsAggregator: windowed aggregates (stats, top pages, top countries,
  top referrers), each cached for 5 minutes per (website, period)

Periods are ``24h``, ``7d``, ``30d`` and ``90d``; anything else is treated as
``7d``.
"""

import logging
import math
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from urllib.parse import urlsplit

from pagestream.base.cache import Cache, CacheUnavailable
from pagestream.base.repositories import AnalyticsRepository
from pagestream.pipeline.guard import cache_read, cache_write
from pagestream.pipeline.keys import (
    ANALYTICS_TTL_SECONDS,
    DAILY_COUNTER_TTL_SECONDS,
    DAILY_PAGEVIEWS_FIELD,
    LIVE_WINDOW_SECONDS,
    analytics_key,
    daily_key,
    live_key,
)

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    "24h": 1,
    "7d": 7,
    "30d": 30,
    "90d": 90,
}
DEFAULT_PERIOD = "7d"

TOP_LIMIT = 10

DIRECT_SOURCE = "Direct"

STATS_FIELDS = frozenset(
    {"pageviews", "uniqueVisitors", "bounceRate", "avgDuration", "liveVisitors"}
)


# ==============================================================================
# Helpers
# ==============================================================================


def parse_period(period: str | None) -> tuple[str, int]:
    """Normalize a period token, returning (token, days)."""
    if period in PERIOD_DAYS:
        return period, PERIOD_DAYS[period]
    return DEFAULT_PERIOD, PERIOD_DAYS[DEFAULT_PERIOD]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.25 -> 2.3)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def percentage(part: int, total: int) -> float:
    """Share of ``total`` as a percentage with one decimal, 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100, 1)


def _is_stats(value) -> bool:
    return isinstance(value, dict) and STATS_FIELDS <= value.keys()


def _is_row_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(row, dict) for row in value)


def clean_url(url: str) -> str:
    """Strip scheme and host, keeping path and query."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def clean_referrer(referrer: str) -> str:
    """Reduce a referrer URL to its hostname without a leading ``www.``."""
    host = urlsplit(referrer).hostname if "://" in referrer else None
    host = host or referrer
    return host[4:] if host.startswith("www.") else host


# ==============================================================================
# Write-path Counters
# ==============================================================================


class LiveVisitors:
    """Sliding-window set of recently active sessions per website."""

    def __init__(self, cache: Cache, window_seconds: int = LIVE_WINDOW_SECONDS):
        self._cache = cache
        self.window_seconds = window_seconds

    def touch(self, website_id: str, session_id: str) -> None:
        """Mark a session as active now."""
        try:
            self._cache.window_add(live_key(website_id), session_id, self.window_seconds)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, live visitors not updated: %s", e)

    def count(self, website_id: str) -> int:
        """Sessions active within the window (0 if the cache is down)."""
        try:
            return self._cache.window_count(live_key(website_id), self.window_seconds)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, reporting 0 live visitors: %s", e)
            return 0


class DailyCounters:
    """Per-day pageview counters for lightweight dashboards."""

    def __init__(self, cache: Cache):
        self._cache = cache

    def increment(self, website_id: str, day: date) -> int | None:
        """Add one pageview to the day's counter. Returns the new value, or None if the cache is down."""
        try:
            return self._cache.hash_increment(
                daily_key(website_id, day),
                DAILY_PAGEVIEWS_FIELD,
                1,
                DAILY_COUNTER_TTL_SECONDS,
            )
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, daily counter not updated: %s", e)
            return None

    def get(self, website_id: str, day: date) -> int:
        """Pageviews counted for the day (0 if absent or the cache is down)."""
        try:
            return self._cache.hash_get(daily_key(website_id, day), DAILY_PAGEVIEWS_FIELD)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, daily counter unknown: %s", e)
            return 0


# ==============================================================================
# Aggregates
# ==============================================================================


class StatsAggregator:
    """
    Windowed aggregates over the durable store, cached per (website, period).

    A cached aggregate is returned as-is without any store query until the
    entry expires.
    """

    def __init__(
        self,
        cache: Cache,
        analytics: AnalyticsRepository,
        live: LiveVisitors,
        clock: Callable[[], datetime] | None = None,
    ):
        self._cache = cache
        self._analytics = analytics
        self._live = live
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _cached(self, kind: str, website_id: str, period: str | None, compute, valid=None):
        token, days = parse_period(period)
        key = analytics_key(kind, website_id, token)

        available, cached = cache_read(self._cache, key)
        valid = valid or _is_row_list
        if cached is not None and valid(cached):
            logger.debug("Analytics cache hit for %s", key)
            return cached
        if cached is not None:
            logger.warning("Discarding unreadable analytics cache entry %s", key)

        since = self._clock() - timedelta(days=days)
        result = compute(website_id, since)

        if available:
            cache_write(self._cache, key, result, ANALYTICS_TTL_SECONDS)
        return result

    def stats(self, website_id: str, period: str | None = None) -> dict:
        """Pageviews, unique visitors, bounce rate, average duration and live visitors."""
        return self._cached("stats", website_id, period, self._compute_stats, valid=_is_stats)

    def top_pages(self, website_id: str, period: str | None = None) -> list[dict]:
        """Top URLs by pageviews, as path and share of all pageviews in the window."""
        return self._cached("pages", website_id, period, self._compute_top_pages)

    def top_countries(self, website_id: str, period: str | None = None) -> list[dict]:
        """Top countries by distinct sessions."""
        return self._cached("countries", website_id, period, self._compute_top_countries)

    def top_referrers(self, website_id: str, period: str | None = None) -> list[dict]:
        """Top referring hosts by distinct sessions, including direct traffic."""
        return self._cached("referrers", website_id, period, self._compute_top_referrers)

    # --------------------------------------------------------------------------
    # Computation
    # --------------------------------------------------------------------------

    def _compute_stats(self, website_id: str, since: datetime) -> dict:
        bounced, total = self._analytics.session_bounce_counts(website_id, since)
        avg_duration = self._analytics.average_session_duration(website_id, since)
        return {
            "pageviews": self._analytics.count_pageviews(website_id, since),
            "uniqueVisitors": self._analytics.count_unique_sessions(website_id, since),
            "bounceRate": percentage(bounced, total),
            "avgDuration": int(round_half_up(avg_duration or 0)),
            "liveVisitors": self._live.count(website_id),
        }

    def _compute_top_pages(self, website_id: str, since: datetime) -> list[dict]:
        total = self._analytics.count_pageviews(website_id, since)
        rows = self._analytics.top_urls(website_id, since, TOP_LIMIT)
        return [
            {"path": clean_url(url), "views": views, "percentage": percentage(views, total)}
            for url, views in rows
        ]

    def _compute_top_countries(self, website_id: str, since: datetime) -> list[dict]:
        rows = self._analytics.top_countries(website_id, since, TOP_LIMIT)
        total = sum(visitors for _, visitors in rows)
        return [
            {"country": country, "visitors": visitors, "percentage": percentage(visitors, total)}
            for country, visitors in rows
        ]

    def _compute_top_referrers(self, website_id: str, since: datetime) -> list[dict]:
        rows = self._analytics.top_referrer_hosts(website_id, since, TOP_LIMIT)
        direct = self._analytics.direct_visitors(website_id, since)

        entries = [(clean_referrer(host), visitors) for host, visitors in rows]
        if direct > 0:
            entries.append((DIRECT_SOURCE, direct))

        total = sum(visitors for _, visitors in entries)
        entries.sort(key=lambda entry: entry[1], reverse=True)
        return [
            {"source": source, "visitors": visitors, "percentage": percentage(visitors, total)}
            for source, visitors in entries[:TOP_LIMIT]
        ]
