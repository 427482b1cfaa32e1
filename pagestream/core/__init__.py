# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external services.

This module contains:
- Domain models (CollectEvent, Website, Session, Pageview, GeoLocation)
- Error taxonomy
- Static rule tables (bot tokens, private address patterns)
- Session lifecycle rules and user-agent classification

All code here is framework-agnostic and easily unit-testable.
"""

from pagestream.core.errors import (
    CacheUnavailable,
    PagestreamError,
    PersistenceFailure,
    ResolutionFailure,
    ValidationError,
)
from pagestream.core.models import (
    ClientContext,
    CollectEvent,
    CollectOutcome,
    GeoLocation,
    Pageview,
    ParsedUserAgent,
    Session,
    Website,
)
from pagestream.core.session_processor import SessionProcessor
from pagestream.core.user_agent import parse_user_agent

__all__ = [
    # Errors
    "CacheUnavailable",
    "PagestreamError",
    "PersistenceFailure",
    "ResolutionFailure",
    "ValidationError",
    # Models
    "ClientContext",
    "CollectEvent",
    "CollectOutcome",
    "GeoLocation",
    "Pageview",
    "ParsedUserAgent",
    "Session",
    "Website",
    # Logic
    "SessionProcessor",
    "parse_user_agent",
]
