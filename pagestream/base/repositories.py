# ==============================================================================
# Repository Abstract Base Classes
# ==============================================================================
"""
Repository ABCs for the durable store.

These define the "what" (find, create, append, aggregate) not the "how".
Concrete implementations in infrastructure/ handle the specifics.

Includes:
- WebsiteRepository: Website lookup and first-seen creation
- SessionRepository: Session creation and atomic pageview increments
- PageviewRepository: Append-only pageview facts
- AnalyticsRepository: Windowed aggregate queries for the read path

All methods raise PersistenceFailure when the store is unreachable or
rejects the operation.

Note: Cache is in a separate module (cache.py) since it is not a
traditional repository.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from pagestream.core.models import Pageview, Session, Website


class WebsiteRepository(ABC):
    """Repository for tracked websites."""

    @abstractmethod
    def get_by_domain(self, domain: str) -> Website | None:
        """Find a website by its unique domain."""
        ...

    @abstractmethod
    def get(self, website_id: str) -> Website | None:
        """Find a website by id."""
        ...

    @abstractmethod
    def create(self, domain: str, name: str, is_public: bool = False) -> Website | None:
        """
        Insert a website unless one with the same domain already exists.

        Returns:
            The new Website, or None if another writer created the domain first
        """
        ...

    @abstractmethod
    def list_all(self) -> list[Website]:
        """All websites ordered by creation time."""
        ...


class SessionRepository(ABC):
    """Repository for visitor sessions."""

    @abstractmethod
    def get(self, session_id: str, website_id: str) -> Session | None:
        """Find a session by (id, website)."""
        ...

    @abstractmethod
    def create(self, session: Session) -> Session | None:
        """
        Insert a new session row.

        Returns:
            The stored Session, or None if a row with the same key already exists
        """
        ...

    @abstractmethod
    def increment(self, session_id: str, website_id: str, now: datetime) -> Session | None:
        """
        Atomically add one pageview, set end_time and recompute bounced.

        Must be a single conditional update at the store (no read-then-write).

        Returns:
            The updated Session, or None if no such row exists
        """
        ...


class PageviewRepository(ABC):
    """Repository for pageview facts."""

    @abstractmethod
    def add(self, pageview: Pageview) -> None:
        """Append a pageview row."""
        ...


class AnalyticsRepository(ABC):
    """
    Aggregate queries over a website's data since a start time.

    Ranked queries return ``(key, count)`` tuples in descending count order.
    """

    @abstractmethod
    def count_pageviews(self, website_id: str, since: datetime) -> int:
        """Pageviews recorded since ``since``."""
        ...

    @abstractmethod
    def count_unique_sessions(self, website_id: str, since: datetime) -> int:
        """Distinct session ids among pageviews since ``since``."""
        ...

    @abstractmethod
    def session_bounce_counts(self, website_id: str, since: datetime) -> tuple[int, int]:
        """(bounced sessions, total sessions) started since ``since``."""
        ...

    @abstractmethod
    def average_session_duration(self, website_id: str, since: datetime) -> float | None:
        """Mean (end_time - start_time) in seconds over sessions with an end time."""
        ...

    @abstractmethod
    def top_urls(self, website_id: str, since: datetime, limit: int) -> list[tuple[str, int]]:
        """URLs ranked by pageview count."""
        ...

    @abstractmethod
    def top_countries(
        self, website_id: str, since: datetime, limit: int
    ) -> list[tuple[str, int]]:
        """Non-null countries ranked by distinct sessions."""
        ...

    @abstractmethod
    def top_referrer_hosts(
        self, website_id: str, since: datetime, limit: int
    ) -> list[tuple[str, int]]:
        """Referrer hostnames (``www.`` stripped) ranked by distinct sessions."""
        ...

    @abstractmethod
    def direct_visitors(self, website_id: str, since: datetime) -> int:
        """Distinct sessions among pageviews with a null or empty referrer."""
        ...
