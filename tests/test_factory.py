# ==============================================================================
# Tests for the Pipeline Factory
# ==============================================================================
"""
Tests for the settings-driven pieces of the composition root that need no
running services: geo tier selection and admission control.
"""

from pagestream.pipeline.factory import build_geo_tiers, build_limiter
from pagestream.utils.config import GeoSettings, IngestSettings


class TestBuildGeoTiers:
    def test_remote_only_when_local_database_missing(self, tmp_path):
        settings = GeoSettings(remote_enabled=True, local_db_path=str(tmp_path / "none.mmdb"))
        tiers, closers = build_geo_tiers(settings)
        assert [t.name for t in tiers] == ["remote"]
        assert closers == []

    def test_no_tiers(self, caplog):
        settings = GeoSettings(remote_enabled=False, local_db_path=None)
        with caplog.at_level("WARNING"):
            tiers, _ = build_geo_tiers(settings)
        assert tiers == []
        assert "No geo tiers configured" in caplog.text


class TestBuildLimiter:
    def test_disabled_at_zero(self):
        assert build_limiter(IngestSettings(max_events_per_second=0)) is None

    def test_default_burst(self):
        limiter = build_limiter(IngestSettings(max_events_per_second=2000, max_burst=None))
        assert limiter.rate == 2000
        assert limiter.burst == 200

    def test_explicit_burst(self):
        limiter = build_limiter(IngestSettings(max_events_per_second=50, max_burst=5))
        assert limiter.burst == 5
