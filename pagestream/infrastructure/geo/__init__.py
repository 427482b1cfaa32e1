# ==============================================================================
# Geolocation Infrastructure
# ==============================================================================
"""
GeoLookup implementations, one per resolver tier.

Available implementations:
- IpApiLookup: remote HTTP service, quota-limited
- GeoLite2Lookup: offline MaxMind GeoLite2 City database
"""

from pagestream.infrastructure.geo.local import GeoLite2Lookup
from pagestream.infrastructure.geo.remote import IpApiLookup

__all__ = [
    "GeoLite2Lookup",
    "IpApiLookup",
]
