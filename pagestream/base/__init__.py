# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the ports of the ports-and-adapters architecture.

Pipeline components depend only on these; concrete adapters live in
pagestream.infrastructure and are wired together by
pagestream.pipeline.build_pipeline().
"""

from pagestream.base.cache import Cache, CacheUnavailable
from pagestream.base.geo import GeoLookup
from pagestream.base.repositories import (
    AnalyticsRepository,
    PageviewRepository,
    SessionRepository,
    WebsiteRepository,
)

__all__ = [
    "AnalyticsRepository",
    "Cache",
    "CacheUnavailable",
    "GeoLookup",
    "PageviewRepository",
    "SessionRepository",
    "WebsiteRepository",
]
