# ==============================================================================
# Collect Pipeline
# ==============================================================================
"""
Orchestrates one inbound pageview event end to end.

Order of operations:

1. Admission control (optional token bucket)
2. Validation and client identification
3. Bot filter (nothing is written for bots)
4. Website resolution (auto-provisioned on first sight)
5. Geo resolution of the client IP
6. Session upsert
7. Durable Pageview insert
8. Live visitor and daily counter updates (cache only, best effort)

Store failures in steps 4, 6 and 7 propagate. Cache failures never fail the
request.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from pagestream.core.models import CollectOutcome
from pagestream.pipeline.entities import EntityCache
from pagestream.pipeline.geo import GeoResolutionChain
from pagestream.pipeline.ingestion import IngestionGate
from pagestream.pipeline.recorder import PageviewRecorder
from pagestream.pipeline.sessions import SessionTracker
from pagestream.pipeline.stats import DailyCounters, LiveVisitors
from pagestream.utils.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)


class CollectPipeline:
    """Accept, filter and persist pageview events."""

    def __init__(
        self,
        gate: IngestionGate,
        entities: EntityCache,
        geo: GeoResolutionChain,
        sessions: SessionTracker,
        recorder: PageviewRecorder,
        live: LiveVisitors,
        daily: DailyCounters,
        limiter: TokenBucketRateLimiter | None = None,
    ):
        self.gate = gate
        self.entities = entities
        self.geo = geo
        self.sessions = sessions
        self.recorder = recorder
        self.live = live
        self.daily = daily
        self.limiter = limiter

    def collect(
        self,
        payload: Mapping,
        headers: Mapping[str, str],
        now: datetime | None = None,
    ) -> CollectOutcome:
        """
        Process one event.

        Args:
            payload: Decoded JSON body of the collect request
            headers: Request headers (proxy IP headers and User-Agent)
            now: Event time, defaults to the current UTC time

        Returns:
            ACCEPTED, BOT or THROTTLED

        Raises:
            ValidationError: if url or domain is missing
            PersistenceFailure: if the store fails
        """
        if self.limiter is not None and not self.limiter.try_acquire():
            logger.warning("Ingest rate limit exceeded, throttling event")
            return CollectOutcome.THROTTLED

        now = now or datetime.now(timezone.utc)
        event, client = self.gate.inspect(payload, headers, now)
        if client.is_bot:
            return CollectOutcome.BOT

        website = self.entities.resolve_website(event.domain)
        location = self.geo.resolve(client.ip)
        session_id = event.session_id or client.fingerprint

        self.sessions.upsert(
            session_id,
            website.id,
            client.ip_hash,
            client.user_agent,
            location,
            now,
        )
        self.recorder.record(event, client, website.id, session_id, location, now)

        self.live.touch(website.id, session_id)
        self.daily.increment(website.id, now.date())

        logger.debug("Accepted pageview for %s (session %s)", event.domain, session_id)
        return CollectOutcome.ACCEPTED
