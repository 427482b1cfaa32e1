# ==============================================================================
# Remote Geolocation Lookup (HTTP API)
# ==============================================================================
"""
GeoLookup backed by an ipapi-style JSON HTTP service.

The service has a hard request quota, so lookups go through a non-blocking
token bucket: when the bucket is empty the tier answers "no result" and the
chain falls through to the next tier instead of waiting.
"""

import logging

import requests

from pagestream.base.geo import GeoLookup
from pagestream.core.errors import ResolutionFailure
from pagestream.core.models import GeoLocation
from pagestream.utils.config import GeoSettings
from pagestream.utils.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)


class IpApiLookup(GeoLookup):
    """
    Remote lookup against ``https://ipapi.co/{ip}/json/`` (or a compatible URL).

    Accepts either ipapi.co field names (country_name, region, city,
    timezone, latitude, longitude) or ip-api.com ones (country, regionName,
    city, timezone, lat, lon).
    """

    def __init__(
        self,
        url_template: str,
        timeout: float = 1.5,
        limiter: TokenBucketRateLimiter | None = None,
        session: requests.Session | None = None,
    ):
        self._url_template = url_template
        self._timeout = timeout
        self._limiter = limiter
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: GeoSettings) -> "IpApiLookup":
        """Build the lookup with a per-minute quota from settings."""
        per_second = settings.remote_rate_per_minute / 60.0
        limiter = TokenBucketRateLimiter(
            rate=per_second, burst=max(settings.remote_rate_per_minute // 4, 1)
        )
        return cls(
            url_template=settings.remote_url,
            timeout=settings.remote_timeout_seconds,
            limiter=limiter,
        )

    def resolve(self, ip: str) -> GeoLocation | None:
        if self._limiter is not None and not self._limiter.try_acquire():
            logger.debug("Remote geo quota exhausted, skipping %s", ip)
            return None

        try:
            response = self._session.get(self._url_template.format(ip=ip), timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ResolutionFailure("remote", ip, e) from e

        # Malformed payloads (non-object body, non-numeric coordinates) are tier failures
        try:
            return self._to_location(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise ResolutionFailure("remote", ip, e) from e

    @staticmethod
    def _to_location(data: dict) -> GeoLocation | None:
        # ipapi.co reports failures in-band as {"error": true, "reason": ...}
        if data.get("error") or data.get("status") == "fail":
            return None

        country = data.get("country_name") or data.get("country")
        if not country:
            return None

        return GeoLocation(
            country=country,
            region=data.get("region") or data.get("regionName"),
            city=data.get("city"),
            timezone=data.get("timezone"),
            latitude=data.get("latitude", data.get("lat")),
            longitude=data.get("longitude", data.get("lon")),
        )
