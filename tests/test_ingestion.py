# ==============================================================================
# Tests for the Ingestion Gate
# ==============================================================================
"""
Unit tests for payload validation, client IP extraction, fingerprinting and
bot filtering.
"""

from datetime import date, datetime, timezone

import pytest

from pagestream.core.errors import ValidationError
from pagestream.core.rules import is_bot_user_agent, is_private_ip
from pagestream.pipeline.ingestion import (
    FALLBACK_CLIENT_IP,
    IngestionGate,
    extract_client_ip,
    fingerprint,
    hash_ip,
)
from tests.fakes import CHROME_UA, GOOGLEBOT_UA


# ==============================================================================
# Validation
# ==============================================================================


class TestValidate:
    """Tests for IngestionGate.validate()."""

    def test_accepts_minimal_payload(self):
        event = IngestionGate().validate({"url": "https://a.com/x", "domain": "a.com"})
        assert event.url == "https://a.com/x"
        assert event.domain == "a.com"
        assert event.referrer is None

    def test_reads_session_id_alias(self):
        event = IngestionGate().validate(
            {"url": "https://a.com/", "domain": "a.com", "sessionId": "abc"}
        )
        assert event.session_id == "abc"

    def test_ignores_unknown_fields(self):
        event = IngestionGate().validate(
            {"url": "https://a.com/", "domain": "a.com", "screen": "1920x1080"}
        )
        assert not hasattr(event, "screen")

    @pytest.mark.parametrize(
        "payload,missing",
        [
            ({"domain": "a.com"}, ["url"]),
            ({"url": "https://a.com/"}, ["domain"]),
            ({"url": "", "domain": "a.com"}, ["url"]),
            ({}, ["url", "domain"]),
        ],
    )
    def test_rejects_missing_fields(self, payload, missing):
        with pytest.raises(ValidationError) as exc_info:
            IngestionGate().validate(payload)
        assert exc_info.value.fields == missing
        assert str(exc_info.value) == "Missing required fields"

    @pytest.mark.parametrize("payload", [["url", "domain"], "url=x", None, 42])
    def test_rejects_non_object_payload(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            IngestionGate().validate(payload)
        assert exc_info.value.fields == ["url", "domain"]

    def test_rejects_wrongly_typed_field(self):
        with pytest.raises(ValidationError, match="Invalid event payload"):
            IngestionGate().validate({"url": "https://a.com/", "domain": "a.com", "referrer": 5})


# ==============================================================================
# Client Identification
# ==============================================================================


class TestClientIp:
    """Tests for extract_client_ip()."""

    def test_first_forwarded_for_entry(self):
        headers = {"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1"}
        assert extract_client_ip(headers) == "203.0.113.7"

    def test_header_names_are_case_insensitive(self):
        assert extract_client_ip({"x-real-ip": "198.51.100.2"}) == "198.51.100.2"

    def test_header_precedence(self):
        headers = {
            "True-Client-IP": "192.0.2.3",
            "X-Real-IP": "192.0.2.2",
            "X-Forwarded-For": "192.0.2.1",
        }
        assert extract_client_ip(headers) == "192.0.2.1"

    def test_true_client_ip_used_last(self):
        assert extract_client_ip({"True-Client-IP": "192.0.2.3"}) == "192.0.2.3"

    def test_fallback_when_no_headers(self):
        assert extract_client_ip({}) == FALLBACK_CLIENT_IP


class TestFingerprint:
    """Tests for fingerprint() and hash_ip()."""

    def test_fingerprint_is_stable_within_a_day(self):
        day = date(2026, 10, 18)
        assert fingerprint("1.2.3.4", CHROME_UA, day) == fingerprint("1.2.3.4", CHROME_UA, day)

    def test_fingerprint_rotates_daily(self):
        assert fingerprint("1.2.3.4", CHROME_UA, date(2026, 10, 18)) != fingerprint(
            "1.2.3.4", CHROME_UA, date(2026, 10, 19)
        )

    def test_fingerprint_length(self):
        value = fingerprint("1.2.3.4", CHROME_UA, date(2026, 10, 18))
        assert len(value) == 32
        int(value, 16)

    def test_ip_hash_is_full_sha256_and_hides_ip(self):
        value = hash_ip("1.2.3.4", CHROME_UA)
        assert len(value) == 64
        assert "1.2.3.4" not in value

    def test_identify_builds_context(self):
        now = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
        client = IngestionGate().identify(
            {"X-Forwarded-For": "1.2.3.4", "User-Agent": CHROME_UA}, now
        )
        assert client.ip == "1.2.3.4"
        assert client.user_agent == CHROME_UA
        assert client.fingerprint == fingerprint("1.2.3.4", CHROME_UA, now.date())
        assert client.ip_hash == hash_ip("1.2.3.4", CHROME_UA)
        assert client.is_bot is False

    def test_missing_user_agent_is_empty(self):
        client = IngestionGate().identify({})
        assert client.user_agent == ""


# ==============================================================================
# Static Rules
# ==============================================================================


class TestBotFilter:
    """Tests for bot detection."""

    @pytest.mark.parametrize(
        "ua",
        [
            GOOGLEBOT_UA,
            "curl/8.4.0",
            "Mozilla/5.0 HeadlessChrome/120.0",
            "python-requests/2.31 Spider",
            "Wget/1.21",
        ],
    )
    def test_detects_bots(self, ua):
        assert is_bot_user_agent(ua)
        assert IngestionGate().is_bot(ua)

    def test_real_browser_is_not_bot(self):
        assert not is_bot_user_agent(CHROME_UA)

    def test_custom_tokens(self):
        gate = IngestionGate(tokens=("acme-monitor",))
        assert gate.is_bot("ACME-Monitor/1.0")
        assert not gate.is_bot(GOOGLEBOT_UA)

    def test_inspect_validates_before_bot_check(self):
        with pytest.raises(ValidationError):
            IngestionGate().inspect({"domain": "a.com"}, {"User-Agent": GOOGLEBOT_UA})


class TestPrivateIp:
    """Tests for is_private_ip()."""

    @pytest.mark.parametrize(
        "ip",
        ["127.0.0.1", "10.1.2.3", "172.16.0.1", "172.31.255.255", "192.168.1.1", "::1",
         "fc00::1", "fe80::1", "169.254.10.10"],
    )
    def test_private(self, ip):
        assert is_private_ip(ip)

    @pytest.mark.parametrize("ip", ["8.8.8.8", "172.32.0.1", "172.15.0.1", "2001:4860::8888"])
    def test_public(self, ip):
        assert not is_private_ip(ip)
