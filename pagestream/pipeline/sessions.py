# ==============================================================================
# Session Tracker
# ==============================================================================
"""
Session upsert with a cache in front of the store.

Paths for one pageview:

1. Cached session: increment in the store, refresh the cache entry. If the
   row has disappeared from the store, continue as path 2.
2. No cached entry and no row: insert a new session (pageviews=1,
   bounced=True, start_time=now, end_time=None) and cache it. If the insert
   loses a race with a concurrent request, continue as path 3.
3. No cached entry but a row exists: increment in the store, re-cache.

The increment is one atomic statement at the store, so concurrent pageviews
for the same session cannot lose updates. Bounce and end-time rules come
from SessionProcessor.
"""

import logging
from datetime import datetime, timezone

from pagestream.base.cache import Cache
from pagestream.base.repositories import SessionRepository
from pagestream.core.errors import PersistenceFailure
from pagestream.core.models import GeoLocation, Session
from pagestream.core.session_processor import SessionProcessor
from pagestream.pipeline.guard import cache_read, cache_write
from pagestream.pipeline.keys import SESSION_TTL_SECONDS, session_key

logger = logging.getLogger(__name__)


class SessionTracker:
    """Maintain per-session pageview counts, bounce flag and timestamps."""

    def __init__(
        self,
        cache: Cache,
        sessions: SessionRepository,
        processor: SessionProcessor | None = None,
    ):
        self._cache = cache
        self._sessions = sessions
        self._processor = processor or SessionProcessor()

    def upsert(
        self,
        session_id: str,
        website_id: str,
        ip_hash: str,
        user_agent: str | None,
        geo: GeoLocation | None,
        now: datetime | None = None,
    ) -> Session:
        """
        Record one pageview against a session, creating it if needed.

        Raises:
            PersistenceFailure: if the store fails
        """
        now = now or datetime.now(timezone.utc)
        key = session_key(website_id, session_id)
        available, cached = cache_read(self._cache, key)

        session = None
        if cached:
            session = self._sessions.increment(session_id, website_id, now)
            if session is None:
                logger.info("Cached session %s missing from store, recreating", session_id)

        if session is None:
            session = self._create_or_increment(
                session_id, website_id, ip_hash, user_agent, geo, now
            )

        if available:
            cache_write(self._cache, key, session.model_dump(mode="json"), SESSION_TTL_SECONDS)
        return session

    def _create_or_increment(
        self,
        session_id: str,
        website_id: str,
        ip_hash: str,
        user_agent: str | None,
        geo: GeoLocation | None,
        now: datetime,
    ) -> Session:
        existing = self._sessions.get(session_id, website_id)
        if existing is None:
            new_session = self._processor.create_session(
                session_id, website_id, ip_hash, user_agent, geo, now
            )
            created = self._sessions.create(new_session)
            if created is not None:
                logger.debug("Started session %s for website %s", session_id, website_id)
                return created
            logger.debug("Lost create race for session %s, incrementing", session_id)

        session = self._sessions.increment(session_id, website_id, now)
        if session is None:
            raise PersistenceFailure(f"Session {session_id} could be neither created nor updated")
        return session
