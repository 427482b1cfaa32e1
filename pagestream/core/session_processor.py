# ==============================================================================
# Session Processor - Pure Domain Logic
# ==============================================================================
"""
Pure session lifecycle rules with no external dependencies.

A session is New until its first pageview is stored, then Active. There is
no Closed state: a session goes quiet when its cache entry and live-visitor
membership expire, and the stored row is left as it is.

Bounce rule: a session is bounced while its lifetime pageview count is at
most one. The same rule is applied on every path (new session, cached
session, uncached session) and is evaluated on the post-increment count.
The PostgreSQL adapter evaluates it inside the atomic UPDATE using
BOUNCE_MAX_PAGEVIEWS.
"""

from datetime import datetime

from pagestream.core.models import GeoLocation, Session

# A session with this many pageviews or fewer counts as a bounce
BOUNCE_MAX_PAGEVIEWS = 1


class SessionProcessor:
    """Session creation and transition rules."""

    @staticmethod
    def is_bounced(pageviews: int) -> bool:
        """Bounce predicate on the lifetime pageview count."""
        return pageviews <= BOUNCE_MAX_PAGEVIEWS

    def create_session(
        self,
        session_id: str,
        website_id: str,
        ip_hash: str,
        user_agent: str | None,
        geo: GeoLocation | None,
        now: datetime,
    ) -> Session:
        """
        Build the New -> Active record for a first pageview.

        Returns:
            Session with pageviews=1, bounced=True, start_time=now, end_time=None
        """
        return Session(
            id=session_id,
            website_id=website_id,
            ip_hash=ip_hash,
            user_agent=user_agent,
            country=geo.country if geo else None,
            start_time=now,
            end_time=None,
            pageviews=1,
            bounced=self.is_bounced(1),
        )

