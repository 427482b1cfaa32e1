# ==============================================================================
# Tests for Geo Resolution
# ==============================================================================
"""
Tests for the geo resolution chain, the per-tier caches and the two tier
adapters (remote HTTP lookup and local GeoLite2 database).
"""

from unittest import mock

import pytest
import requests

from pagestream.base.geo import GeoLookup
from pagestream.core.errors import ResolutionFailure
from pagestream.core.models import GeoLocation
from pagestream.infrastructure.geo import GeoLite2Lookup, IpApiLookup
from pagestream.pipeline.geo import GeoResolutionChain, GeoTier, TierCache
from pagestream.pipeline.keys import GEO_NEGATIVE_MARKER, geo_key
from pagestream.utils.rate_limiter import TokenBucketRateLimiter
from tests.fakes import AU, PUBLIC_IP, US, DownCache, StaticGeoLookup


# ==============================================================================
# Resolution Chain
# ==============================================================================


class TestChain:
    """Tests for GeoResolutionChain.resolve()."""

    @pytest.mark.parametrize("ip", ["127.0.0.1", "192.168.0.10", "10.0.0.5", "::1"])
    def test_private_ip_short_circuits(self, geo_chain, geo_lookup, fake_redis, ip):
        """Private addresses never reach a tier and are never cached."""
        assert geo_chain.resolve(ip) is None
        assert geo_lookup.calls == []
        assert fake_redis.keys("geo:*") == []

    def test_positive_result_is_cached(self, geo_chain, geo_lookup, fake_redis):
        assert geo_chain.resolve(PUBLIC_IP) == US
        assert geo_chain.resolve(PUBLIC_IP) == US
        assert geo_lookup.calls == [PUBLIC_IP]
        assert 0 < fake_redis.ttl(geo_key(PUBLIC_IP)) <= 86400

    def test_shared_cache_entry_skips_tiers(self, geo_chain, geo_lookup, fake_redis):
        fake_redis.set(geo_key("9.9.9.9"), AU.model_dump_json())
        assert geo_chain.resolve("9.9.9.9") == AU
        assert geo_lookup.calls == []

    def test_unresolvable_ip_is_negatively_cached(self, geo_chain, geo_lookup, fake_redis):
        """A miss on every tier stores the negative marker for one hour."""
        assert geo_chain.resolve("203.0.113.9") is None
        assert fake_redis.get(geo_key("203.0.113.9")) == GEO_NEGATIVE_MARKER
        assert 0 < fake_redis.ttl(geo_key("203.0.113.9")) <= 3600

        assert geo_chain.resolve("203.0.113.9") is None
        assert geo_lookup.calls == ["203.0.113.9"]

    def test_tiers_tried_in_order(self, fake_cache):
        first = StaticGeoLookup({})
        second = StaticGeoLookup({"203.0.113.1": AU})
        chain = GeoResolutionChain([GeoTier("first", first), GeoTier("second", second)], fake_cache)

        assert chain.resolve("203.0.113.1") == AU
        assert first.calls == ["203.0.113.1"]
        assert second.calls == ["203.0.113.1"]

    def test_first_hit_wins(self, fake_cache):
        first = StaticGeoLookup({"203.0.113.1": US})
        second = StaticGeoLookup({"203.0.113.1": AU})
        chain = GeoResolutionChain([GeoTier("first", first), GeoTier("second", second)], fake_cache)

        assert chain.resolve("203.0.113.1") == US
        assert second.calls == []

    def test_failing_tier_is_skipped(self, fake_cache, caplog):
        broken = StaticGeoLookup(error=requests.ConnectionError("down"))
        fallback = StaticGeoLookup({"203.0.113.1": AU})
        chain = GeoResolutionChain(
            [GeoTier("broken", broken), GeoTier("fallback", fallback)], fake_cache
        )

        with caplog.at_level("WARNING"):
            assert chain.resolve("203.0.113.1") == AU
        assert "Geo tier broken failed" in caplog.text

    def test_all_tiers_failing_yields_none(self, fake_cache, fake_redis):
        broken = StaticGeoLookup(error=ValueError("bad"))
        chain = GeoResolutionChain([GeoTier("broken", broken)], fake_cache)
        assert chain.resolve("203.0.113.1") is None
        assert fake_redis.get(geo_key("203.0.113.1")) == GEO_NEGATIVE_MARKER

    @pytest.mark.parametrize(
        "payload", [{"country_name": "X", "latitude": "n/a"}, ["not", "an", "object"]]
    )
    def test_malformed_remote_payload_falls_through(self, fake_cache, fake_redis, payload):
        remote = IpApiLookup("https://ipapi.co/{ip}/json/", session=_session_returning(payload))
        fallback = StaticGeoLookup({})
        chain = GeoResolutionChain(
            [GeoTier("remote", remote), GeoTier("fallback", fallback)], fake_cache
        )

        assert chain.resolve("203.0.113.1") is None
        assert fallback.calls == ["203.0.113.1"]
        assert fake_redis.get(geo_key("203.0.113.1")) == GEO_NEGATIVE_MARKER

    def test_unexpected_lookup_error_is_isolated(self, fake_cache, caplog):
        broken = mock.Mock(spec=GeoLookup)
        broken.resolve.side_effect = RuntimeError("boom")
        fallback = StaticGeoLookup({"203.0.113.1": AU})
        chain = GeoResolutionChain(
            [GeoTier("broken", broken), GeoTier("fallback", fallback)], fake_cache
        )

        with caplog.at_level("WARNING"):
            assert chain.resolve("203.0.113.1") == AU
        assert "Geo tier broken failed" in caplog.text

    def test_cache_entries_kept_for_full_window(self, geo_chain, fake_redis):
        geo_chain.resolve(PUBLIC_IP)
        geo_chain.resolve("203.0.113.9")
        assert 86000 < fake_redis.ttl(geo_key(PUBLIC_IP)) <= 86400
        assert 3500 < fake_redis.ttl(geo_key("203.0.113.9")) <= 3600

    def test_expired_negative_entry_is_re_resolved(self, geo_chain, geo_lookup, fake_redis):
        geo_chain.resolve("203.0.113.9")
        fake_redis.delete(geo_key("203.0.113.9"))

        geo_chain.resolve("203.0.113.9")
        assert geo_lookup.calls == ["203.0.113.9", "203.0.113.9"]

    def test_expired_positive_entry_is_re_resolved(self, fake_cache, fake_redis):
        lookup = StaticGeoLookup({PUBLIC_IP: US})
        chain = GeoResolutionChain([GeoTier("static", lookup, TierCache(10))], fake_cache)
        chain.resolve(PUBLIC_IP)
        fake_redis.delete(geo_key(PUBLIC_IP))

        assert chain.resolve(PUBLIC_IP) == US
        # Served by the tier cache, then written back to the shared cache
        assert lookup.calls == [PUBLIC_IP]
        assert fake_redis.exists(geo_key(PUBLIC_IP))

    def test_unreadable_cache_entry_is_re_resolved(self, geo_chain, geo_lookup, fake_redis):
        fake_redis.set(geo_key(PUBLIC_IP), "{not json")
        assert geo_chain.resolve(PUBLIC_IP) == US
        assert geo_lookup.calls == [PUBLIC_IP]

    def test_cache_down_resolves_without_caching(self, geo_lookup):
        chain = GeoResolutionChain([GeoTier("static", geo_lookup)], DownCache())
        assert chain.resolve(PUBLIC_IP) == US
        assert chain.resolve("203.0.113.9") is None


# ==============================================================================
# Tier Cache
# ==============================================================================


class TestTierCache:
    """Tests for the bounded per-tier cache."""

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="max_size must be positive"):
            TierCache(0)

    def test_evicts_oldest_quarter_when_full(self):
        cache = TierCache(max_size=8)
        for i in range(9):
            cache.put(f"203.0.113.{i}", US)

        # 9 entries exceeded 8, so the oldest 9 // 4 = 2 are dropped
        assert len(cache) == 7
        assert "203.0.113.0" not in cache
        assert "203.0.113.1" not in cache
        assert "203.0.113.2" in cache
        assert "203.0.113.8" in cache

    def test_tier_uses_its_cache(self):
        lookup = StaticGeoLookup({"203.0.113.1": AU})
        tier = GeoTier("static", lookup, TierCache(10))
        assert tier.resolve("203.0.113.1") == AU
        assert tier.resolve("203.0.113.1") == AU
        assert lookup.calls == ["203.0.113.1"]

    def test_tier_does_not_cache_misses(self):
        lookup = StaticGeoLookup({})
        tier = GeoTier("static", lookup, TierCache(10))
        tier.resolve("203.0.113.1")
        tier.resolve("203.0.113.1")
        assert len(lookup.calls) == 2


# ==============================================================================
# Remote Tier
# ==============================================================================


def _session_returning(payload: dict | list) -> mock.Mock:
    session = mock.Mock(spec=requests.Session)
    session.get.return_value.json.return_value = payload
    return session


class TestIpApiLookup:
    """Tests for the remote HTTP tier."""

    def test_parses_ipapi_co_response(self):
        session = _session_returning(
            {
                "country_name": "Australia",
                "region": "Queensland",
                "city": "Brisbane",
                "timezone": "Australia/Brisbane",
                "latitude": -27.47,
                "longitude": 153.02,
            }
        )
        lookup = IpApiLookup("https://ipapi.co/{ip}/json/", session=session)

        location = lookup.resolve("1.1.1.1")
        assert location == GeoLocation(
            country="Australia",
            region="Queensland",
            city="Brisbane",
            timezone="Australia/Brisbane",
            latitude=-27.47,
            longitude=153.02,
        )
        session.get.assert_called_once_with("https://ipapi.co/1.1.1.1/json/", timeout=1.5)

    def test_parses_ip_api_com_response(self):
        session = _session_returning(
            {"status": "success", "country": "Canada", "regionName": "Ontario", "lat": 43.6, "lon": -79.4}
        )
        location = IpApiLookup("http://ip-api.com/json/{ip}", session=session).resolve("2.2.2.2")
        assert location.country == "Canada"
        assert location.region == "Ontario"
        assert location.latitude == 43.6

    @pytest.mark.parametrize(
        "payload",
        [{"error": True, "reason": "Reserved IP Address"}, {"status": "fail"}, {"city": "Nowhere"}],
    )
    def test_in_band_failure_is_a_miss(self, payload):
        lookup = IpApiLookup("https://ipapi.co/{ip}/json/", session=_session_returning(payload))
        assert lookup.resolve("3.3.3.3") is None

    def test_transport_error_raises_resolution_failure(self):
        session = mock.Mock(spec=requests.Session)
        session.get.side_effect = requests.Timeout("slow")
        lookup = IpApiLookup("https://ipapi.co/{ip}/json/", session=session)

        with pytest.raises(ResolutionFailure) as exc_info:
            lookup.resolve("4.4.4.4")
        assert exc_info.value.tier == "remote"

    @pytest.mark.parametrize(
        "payload", [{"country_name": "X", "latitude": "n/a"}, ["not", "an", "object"]]
    )
    def test_malformed_payload_raises_resolution_failure(self, payload):
        lookup = IpApiLookup("https://ipapi.co/{ip}/json/", session=_session_returning(payload))
        with pytest.raises(ResolutionFailure) as exc_info:
            lookup.resolve("7.7.7.7")
        assert exc_info.value.tier == "remote"

    def test_quota_exhausted_skips_request(self):
        session = _session_returning({"country_name": "Australia"})
        limiter = TokenBucketRateLimiter(rate=0.001, burst=1)
        lookup = IpApiLookup("https://ipapi.co/{ip}/json/", limiter=limiter, session=session)

        assert lookup.resolve("5.5.5.5") is not None
        assert lookup.resolve("6.6.6.6") is None
        assert session.get.call_count == 1


# ==============================================================================
# Local Tier
# ==============================================================================


class TestGeoLite2Lookup:
    """Tests for the offline GeoLite2 tier."""

    def test_missing_database_disables_tier(self, tmp_path):
        lookup = GeoLite2Lookup(str(tmp_path / "missing.mmdb"))
        assert lookup.available is False
        assert lookup.resolve("8.8.8.8") is None

    def test_no_path_disables_tier(self):
        assert GeoLite2Lookup(None).available is False
