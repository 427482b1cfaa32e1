# ==============================================================================
# Entity Cache (Website resolution)
# ==============================================================================
"""
Cache-aside access to Website records.

Unseen domains are auto-provisioned on first event. Concurrent first-seen
requests race on the store's unique domain index; the loser re-reads.
"""

import logging

from pagestream.base.cache import Cache
from pagestream.base.repositories import WebsiteRepository
from pagestream.core.errors import PersistenceFailure
from pagestream.core.models import Website
from pagestream.pipeline.guard import cache_read, cache_write
from pagestream.pipeline.keys import WEBSITE_TTL_SECONDS, website_key

logger = logging.getLogger(__name__)


class EntityCache:
    """Resolve websites by domain through the cache, creating them on first sight."""

    def __init__(self, cache: Cache, websites: WebsiteRepository):
        self._cache = cache
        self._websites = websites

    def resolve_website(self, domain: str) -> Website:
        """
        Return the Website for ``domain``, creating it if it does not exist.

        Raises:
            PersistenceFailure: if the store fails, or the domain disappears
                between a lost insert race and the re-read
        """
        key = website_key(domain)
        available, cached = cache_read(self._cache, key)
        if cached:
            try:
                website = Website.model_validate(cached)
                logger.debug("Website cache hit for %s", domain)
                return website
            except ValueError:
                logger.warning("Discarding unreadable website cache entry for %s", domain)

        website = self._websites.get_by_domain(domain)
        if website is None:
            website = self._websites.create(domain, name=domain, is_public=False)
            if website is None:
                # Another request created it between our read and insert
                logger.debug("Lost create race for %s, re-reading", domain)
                website = self._websites.get_by_domain(domain)
                if website is None:
                    raise PersistenceFailure(f"Website for {domain} vanished after insert conflict")

        if available:
            cache_write(self._cache, key, website.model_dump(mode="json"), WEBSITE_TTL_SECONDS)
        return website

    def get_website(self, website_id: str) -> Website | None:
        """Look up a website by id (store only)."""
        return self._websites.get(website_id)

    def list_websites(self) -> list[Website]:
        """All tracked websites, oldest first (store only)."""
        return self._websites.list_all()
