# ==============================================================================
# Cache Keys and TTLs
# ==============================================================================
"""
Key builders and expiry windows for every cache projection the pipeline keeps.
"""

from datetime import date

# ==============================================================================
# TTLs (seconds)
# ==============================================================================

WEBSITE_TTL_SECONDS = 3600  # 1 hour
SESSION_TTL_SECONDS = 3600  # 1 hour
GEO_TTL_SECONDS = 86400  # 24 hours
GEO_NEGATIVE_TTL_SECONDS = 3600  # 1 hour
ANALYTICS_TTL_SECONDS = 300  # 5 minutes
LIVE_WINDOW_SECONDS = 300  # 5 minutes
DAILY_COUNTER_TTL_SECONDS = 172800  # 48 hours

# Stored under geo:{ip} when no tier could resolve the address
GEO_NEGATIVE_MARKER = "null"

DAILY_PAGEVIEWS_FIELD = "pageviews"


# ==============================================================================
# Key Builders
# ==============================================================================


def website_key(domain: str) -> str:
    return f"website:{domain}"


def session_key(website_id: str, session_id: str) -> str:
    return f"session:{website_id}:{session_id}"


def geo_key(ip: str) -> str:
    return f"geo:{ip}"


def analytics_key(kind: str, website_id: str, period: str) -> str:
    return f"analytics:{kind}:{website_id}:{period}"


def live_key(website_id: str) -> str:
    return f"live:{website_id}"


def daily_key(website_id: str, day: date) -> str:
    return f"stats:daily:{website_id}:{day.isoformat()}"


# Patterns covering every projection above, for bulk invalidation
PROJECTION_PATTERNS = (
    "website:*",
    "session:*",
    "geo:*",
    "analytics:*",
    "live:*",
    "stats:daily:*",
)
