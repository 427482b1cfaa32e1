# ==============================================================================
# Local Geolocation Lookup (GeoLite2 database)
# ==============================================================================
"""
GeoLookup backed by an offline MaxMind GeoLite2 City database.

Always available once the database file is present; when the file is
missing the tier simply answers "no result" for every address.
"""

import logging
import os

import geoip2.database
import geoip2.errors
from maxminddb.errors import InvalidDatabaseError

from pagestream.base.geo import GeoLookup
from pagestream.core.errors import ResolutionFailure
from pagestream.core.models import GeoLocation

logger = logging.getLogger(__name__)


class GeoLite2Lookup(GeoLookup):
    """Lookup against a local GeoLite2-City.mmdb file."""

    def __init__(self, db_path: str | None):
        self._db_path = db_path
        self._reader: geoip2.database.Reader | None = None
        if db_path and os.path.exists(db_path):
            self._reader = geoip2.database.Reader(db_path)
            logger.info("GeoLite2 database loaded from %s", db_path)
        else:
            logger.warning("GeoLite2 database not found at %s; local geo tier disabled", db_path)

    @property
    def available(self) -> bool:
        return self._reader is not None

    def resolve(self, ip: str) -> GeoLocation | None:
        if self._reader is None:
            return None

        try:
            response = self._reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            return None
        except (ValueError, InvalidDatabaseError) as e:
            raise ResolutionFailure("local", ip, e) from e

        country = response.country.name or response.country.iso_code
        if not country:
            return None

        return GeoLocation(
            country=country,
            region=response.subdivisions.most_specific.name,
            city=response.city.name,
            timezone=response.location.time_zone,
            latitude=response.location.latitude,
            longitude=response.location.longitude,
        )

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
