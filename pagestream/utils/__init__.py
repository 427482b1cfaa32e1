# ==============================================================================
# Pagestream Utilities
# ==============================================================================
"""
Shared utilities: configuration, retry policies, rate limiting, logging
setup and database schema helpers.
"""

from pagestream.utils.config import (
    GeoSettings,
    IngestSettings,
    PostgresSettings,
    Settings,
    ValkeySettings,
    get_settings,
)
from pagestream.utils.log import configure_logging
from pagestream.utils.rate_limiter import TokenBucketRateLimiter

__all__ = [
    # Config
    "GeoSettings",
    "IngestSettings",
    "PostgresSettings",
    "Settings",
    "ValkeySettings",
    "get_settings",
    # Logging
    "configure_logging",
    # Rate limiting
    "TokenBucketRateLimiter",
]
