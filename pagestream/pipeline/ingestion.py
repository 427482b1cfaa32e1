# ==============================================================================
# Ingestion Gate
# ==============================================================================
"""
First stage of the collect path.

- Validates the payload (url and domain are required)
- Extracts the client IP from proxy headers
- Derives the cookie-less session fingerprint and the privacy-preserving IP hash
- Flags automated traffic by user agent

Nothing here touches the cache or the store.
"""

import hashlib
import logging
from collections.abc import Mapping
from datetime import date, datetime, timezone

from pydantic import ValidationError as PydanticValidationError

from pagestream.core.errors import ValidationError
from pagestream.core.models import ClientContext, CollectEvent
from pagestream.core.rules import bot_tokens, is_bot_user_agent

logger = logging.getLogger(__name__)

# Checked in order; first non-empty wins
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "true-client-ip")

# Used when no proxy header is present
FALLBACK_CLIENT_IP = "127.0.0.1"

FINGERPRINT_LENGTH = 32

REQUIRED_FIELDS = ("url", "domain")


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def extract_client_ip(headers: Mapping[str, str]) -> str:
    """
    Pick the client IP from proxy headers.

    Order: first X-Forwarded-For entry, X-Real-IP, True-Client-IP. Callers
    behind an unrecognised proxy chain get the loopback fallback.
    """
    for name in CLIENT_IP_HEADERS:
        value = _header(headers, name)
        if not value:
            continue
        if name == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return FALLBACK_CLIENT_IP


def fingerprint(ip: str, user_agent: str, day: date) -> str:
    """Daily-rotating session id: SHA-256 of ip + user agent + ISO day, truncated."""
    digest = hashlib.sha256(f"{ip}{user_agent}{day.isoformat()}".encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def hash_ip(ip: str, user_agent: str) -> str:
    """SHA-256 of ip + user agent, stored instead of the raw address."""
    return hashlib.sha256(f"{ip}{user_agent}".encode("utf-8")).hexdigest()


class IngestionGate:
    """Validation, client identification and bot filtering for inbound events."""

    def __init__(self, tokens: tuple[str, ...] | None = None):
        """
        Args:
            tokens: Bot tokens to match. Defaults to the packaged table.
        """
        self._tokens = tokens if tokens is not None else bot_tokens()

    def validate(self, payload: Mapping) -> CollectEvent:
        """
        Parse the payload, rejecting it if url or domain is missing or empty.

        Raises:
            ValidationError: with the list of offending fields
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Missing required fields", fields=list(REQUIRED_FIELDS))

        missing = [f for f in REQUIRED_FIELDS if not payload.get(f)]
        if missing:
            raise ValidationError("Missing required fields", fields=missing)

        try:
            return CollectEvent.model_validate(payload)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError("Invalid event payload", fields=fields) from e

    def is_bot(self, user_agent: str) -> bool:
        return is_bot_user_agent(user_agent, self._tokens)

    def identify(self, headers: Mapping[str, str], now: datetime | None = None) -> ClientContext:
        """Derive the client context from request headers."""
        now = now or datetime.now(timezone.utc)
        ip = extract_client_ip(headers)
        user_agent = _header(headers, "user-agent") or ""
        return ClientContext(
            ip=ip,
            user_agent=user_agent,
            fingerprint=fingerprint(ip, user_agent, now.date()),
            ip_hash=hash_ip(ip, user_agent),
            is_bot=self.is_bot(user_agent),
        )

    def inspect(
        self,
        payload: Mapping,
        headers: Mapping[str, str],
        now: datetime | None = None,
    ) -> tuple[CollectEvent, ClientContext]:
        """
        Validate then identify.

        Validation runs first so a malformed event is rejected before anything
        else happens, bot or not.
        """
        event = self.validate(payload)
        client = self.identify(headers, now)
        if client.is_bot:
            logger.debug("Filtered bot user agent: %s", client.user_agent)
        return event, client
