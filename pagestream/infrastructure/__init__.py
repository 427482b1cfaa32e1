# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the ports in pagestream.base:
- cache/ - Cache adapters (Valkey/Redis)
- repositories/ - Database adapters (PostgreSQL)
- geo/ - Geolocation tiers (remote HTTP API, offline GeoLite2)
"""

from pagestream.infrastructure.cache import ValkeyCache, check_valkey_connection
from pagestream.infrastructure.geo import GeoLite2Lookup, IpApiLookup
from pagestream.infrastructure.repositories import (
    PostgreSQLAnalyticsRepository,
    PostgreSQLDatabase,
    PostgreSQLPageviewRepository,
    PostgreSQLSessionRepository,
    PostgreSQLWebsiteRepository,
    check_postgresql_connection,
)

__all__ = [
    # Cache
    "ValkeyCache",
    "check_valkey_connection",
    # Geo
    "GeoLite2Lookup",
    "IpApiLookup",
    # Repositories
    "PostgreSQLAnalyticsRepository",
    "PostgreSQLDatabase",
    "PostgreSQLPageviewRepository",
    "PostgreSQLSessionRepository",
    "PostgreSQLWebsiteRepository",
    "check_postgresql_connection",
]
