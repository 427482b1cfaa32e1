# ==============================================================================
# Pageview Recorder
# ==============================================================================
"""
Append the durable Pageview fact for an accepted event.

This is the authoritative record of the event: a failure here propagates and
fails the whole request.
"""

import logging
from datetime import datetime, timezone

from pagestream.base.repositories import PageviewRepository
from pagestream.core.models import ClientContext, CollectEvent, GeoLocation, Pageview
from pagestream.core.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


class PageviewRecorder:
    """Build and persist Pageview rows."""

    def __init__(self, pageviews: PageviewRepository):
        self._pageviews = pageviews

    def record(
        self,
        event: CollectEvent,
        client: ClientContext,
        website_id: str,
        session_id: str,
        geo: GeoLocation | None,
        now: datetime | None = None,
    ) -> Pageview:
        """
        Persist one pageview.

        Raises:
            PersistenceFailure: if the store rejects the insert
        """
        ua = parse_user_agent(client.user_agent)
        pageview = Pageview(
            website_id=website_id,
            session_id=session_id,
            url=event.url,
            referrer=event.referrer,
            user_agent=client.user_agent,
            ip_hash=client.ip_hash,
            country=geo.country if geo else None,
            region=geo.region if geo else None,
            city=geo.city if geo else None,
            os=ua.os,
            browser=ua.browser,
            device=ua.device,
            utm_source=event.utm_source,
            utm_medium=event.utm_medium,
            utm_campaign=event.utm_campaign,
            timestamp=now or datetime.now(timezone.utc),
        )
        self._pageviews.add(pageview)
        return pageview
