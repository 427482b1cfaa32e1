# ==============================================================================
# Pagestream Domain Models
# ==============================================================================
"""
Pydantic models for collected events, websites, sessions and pageviews.

These models are used for:
- Validating the inbound collect payload
- Serializing/deserializing cache entries (JSON)
- Mapping rows to and from the durable store

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CollectEvent(BaseModel):
    """
    Inbound pageview payload posted by the tracking snippet.

    Attributes:
        url: Full URL of the viewed page
        domain: Hostname of the tracked website
        referrer: Referring URL, if any
        title: Document title
        session_id: Caller-supplied session id (overrides the fingerprint)
        utm_source, utm_medium, utm_campaign: Campaign attribution
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = Field(..., min_length=1, description="Page URL")
    domain: str = Field(..., min_length=1, description="Website domain")
    referrer: str | None = Field(None, description="Referring URL")
    title: str | None = Field(None, description="Document title")
    session_id: str | None = Field(None, alias="sessionId", description="Explicit session id")
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None


class ClientContext(BaseModel):
    """Caller metadata derived from request headers."""

    ip: str
    user_agent: str
    fingerprint: str
    ip_hash: str
    is_bot: bool = False


class ParsedUserAgent(BaseModel):
    """Coarse browser/OS/device classification of a user-agent string."""

    os: str | None = None
    browser: str | None = None
    device: str = "desktop"


class GeoLocation(BaseModel):
    """Resolved location for an IP address."""

    country: str
    region: str | None = None
    city: str | None = None
    timezone: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class Website(BaseModel):
    """A tracked website, one per distinct domain."""

    id: str
    domain: str
    name: str
    is_public: bool = False
    created_at: datetime | None = None


class Session(BaseModel):
    """
    A visitor session on one website.

    Attributes:
        id: Caller-supplied id or derived fingerprint
        website_id: Owning website
        ip_hash: SHA-256 of client IP and user agent
        user_agent: Raw user-agent string
        country: Country resolved for the first pageview
        start_time: First pageview time
        end_time: Latest pageview time (None until a second pageview)
        pageviews: Pageviews in this session (>= 1)
        bounced: True while the session has a single pageview
    """

    id: str
    website_id: str
    ip_hash: str
    user_agent: str | None = None
    country: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    pageviews: int = Field(1, ge=1)
    bounced: bool = True

    @property
    def duration_seconds(self) -> int:
        """Seconds between first and latest pageview (0 for single-page sessions)."""
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds())


class Pageview(BaseModel):
    """Append-only pageview fact."""

    website_id: str
    session_id: str
    url: str
    referrer: str | None = None
    user_agent: str | None = None
    ip_hash: str
    country: str | None = None
    region: str | None = None
    city: str | None = None
    os: str | None = None
    browser: str | None = None
    device: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    timestamp: datetime

    def to_db_record(self) -> dict:
        """Convert pageview to database record format."""
        return self.model_dump()


class CollectOutcome(str, Enum):
    """Result of running one event through the collect pipeline."""

    ACCEPTED = "accepted"
    BOT = "bot"
    THROTTLED = "throttled"
