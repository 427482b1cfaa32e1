# ==============================================================================
# Geolocation Lookup Abstract Base Class
# ==============================================================================
"""
Abstract interface for a single IP geolocation source.

A lookup answers for one tier only (a remote API, an offline database, ...).
Tiering, caching and private-range handling live in the pipeline's
GeoResolutionChain, not here.
"""

from abc import ABC, abstractmethod

from pagestream.core.models import GeoLocation


class GeoLookup(ABC):
    """One geolocation source."""

    @abstractmethod
    def resolve(self, ip: str) -> GeoLocation | None:
        """
        Resolve an IP address.

        Returns:
            GeoLocation, or None if this source has no answer for the address

        Raises:
            ResolutionFailure: if the source errored (unreachable, bad response)
        """
        ...
