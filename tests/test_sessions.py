# ==============================================================================
# Tests for Session Tracking
# ==============================================================================
"""
Tests for SessionTracker and the session rules it applies.

Covers the three upsert paths (cached, new, uncached-but-stored), the
unified bounce rule, multi-site isolation of the same session id, and
degraded operation when the cache is unreachable.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from pagestream.core.errors import PersistenceFailure
from pagestream.core.session_processor import SessionProcessor
from pagestream.pipeline.keys import session_key
from pagestream.pipeline.sessions import SessionTracker
from tests.fakes import NOW, US, DownCache


@pytest.fixture()
def tracker(fake_cache, session_repo):
    return SessionTracker(fake_cache, session_repo)


def _upsert(tracker, session_id="s1", website_id="w1", now=NOW):
    return tracker.upsert(session_id, website_id, "hash", "UA", US, now)


# ==============================================================================
# Session Rules
# ==============================================================================


class TestSessionProcessor:
    """Tests for the pure session rules."""

    @pytest.mark.parametrize("pageviews,bounced", [(1, True), (2, False), (10, False)])
    def test_bounce_rule(self, pageviews, bounced):
        assert SessionProcessor.is_bounced(pageviews) is bounced

    def test_create_session(self):
        session = SessionProcessor().create_session("s1", "w1", "hash", "UA", US, NOW)
        assert session.pageviews == 1
        assert session.bounced is True
        assert session.start_time == NOW
        assert session.end_time is None
        assert session.country == "United States"
        assert session.duration_seconds == 0

    def test_create_session_without_geo(self):
        session = SessionProcessor().create_session("s1", "w1", "hash", None, None, NOW)
        assert session.country is None


# ==============================================================================
# Upsert Paths
# ==============================================================================


class TestUpsert:
    """Tests for SessionTracker.upsert()."""

    def test_first_pageview_creates_session(self, tracker, store, fake_cache):
        session = _upsert(tracker)
        assert session.pageviews == 1
        assert session.bounced is True
        assert session.end_time is None
        assert ("s1", "w1") in store.sessions
        assert fake_cache.get(session_key("w1", "s1"))["pageviews"] == 1

    def test_cached_session_is_incremented(self, tracker, store):
        _upsert(tracker)
        later = NOW + timedelta(seconds=45)
        session = _upsert(tracker, now=later)

        assert session.pageviews == 2
        assert session.bounced is False
        assert session.end_time == later
        assert session.start_time == NOW
        assert session.duration_seconds == 45
        assert store.sessions[("s1", "w1")].pageviews == 2

    def test_uncached_stored_session_is_incremented(self, tracker, fake_redis, store):
        """With the cache entry expired, the stored row is still continued."""
        _upsert(tracker)
        fake_redis.delete(session_key("w1", "s1"))

        session = _upsert(tracker, now=NOW + timedelta(minutes=2))
        assert session.pageviews == 2
        assert session.bounced is False
        assert fake_redis.exists(session_key("w1", "s1"))

    def test_stale_cache_entry_recreates_session(self, tracker, store, fake_cache):
        """A cached session whose row is gone starts over as a new session."""
        _upsert(tracker)
        store.sessions.clear()

        session = _upsert(tracker)
        assert session.pageviews == 1
        assert ("s1", "w1") in store.sessions

    def test_cache_ttl(self, tracker, fake_redis):
        _upsert(tracker)
        assert 0 < fake_redis.ttl(session_key("w1", "s1")) <= 3600

    def test_same_session_id_on_two_websites(self, tracker, store):
        """The same fingerprint on two tracked sites yields two sessions."""
        _upsert(tracker, website_id="w1")
        _upsert(tracker, website_id="w2")
        _upsert(tracker, website_id="w1")

        assert store.sessions[("s1", "w1")].pageviews == 2
        assert store.sessions[("s1", "w2")].pageviews == 1

    def test_concurrent_pageviews_do_not_lose_updates(self, tracker, store):
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(lambda _: _upsert(tracker), range(40)))

        assert store.sessions[("s1", "w1")].pageviews == 40

    def test_lost_create_race_falls_back_to_increment(self, tracker, session_repo, fake_redis):
        _upsert(tracker)
        fake_redis.delete(session_key("w1", "s1"))
        # The read misses as if a concurrent insert had not committed yet
        session_repo.get = lambda session_id, website_id: None

        session = _upsert(tracker)
        assert session.pageviews == 2

    def test_store_failure_propagates(self, tracker, store):
        store.fail = True
        with pytest.raises(PersistenceFailure):
            _upsert(tracker)


class TestCacheUnavailable:
    """SessionTracker keeps working against the store when the cache is down."""

    def test_upserts_directly_against_store(self, session_repo, store):
        tracker = SessionTracker(DownCache(), session_repo)
        _upsert(tracker)
        session = _upsert(tracker, now=NOW + timedelta(seconds=10))
        assert session.pageviews == 2
        assert store.sessions[("s1", "w1")].bounced is False
