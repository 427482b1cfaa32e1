# ==============================================================================
# Request Handlers
# ==============================================================================
"""
Framework-neutral request handlers for the collect and stats endpoints.

Handlers take already-parsed input and return an HttpResponse that any HTTP
framework can translate. Routing, CORS and authentication belong to the host
server.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from pagestream.core.errors import ValidationError
from pagestream.core.models import CollectOutcome
from pagestream.pipeline.collect import CollectPipeline
from pagestream.pipeline.stats import StatsAggregator

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass
class HttpResponse:
    status: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)
    media_type: str = "text/plain"

    def json(self):
        return json.loads(self.body)


def handle_collect(
    pipeline: CollectPipeline,
    payload: Mapping,
    headers: Mapping[str, str],
) -> HttpResponse:
    """
    Run one collect request through the pipeline.

    Returns:
        200 "OK" (with no-cache headers) or "Bot detected", 400 for missing
        fields, 429 when throttled, 500 on any other failure
    """
    try:
        outcome = pipeline.collect(payload, headers)
    except ValidationError as e:
        logger.debug("Rejected event: %s (%s)", e, ", ".join(e.fields))
        return HttpResponse(400, "Missing required fields")
    except Exception:
        logger.exception("Error processing collect request")
        return HttpResponse(500, "Internal Server Error")

    if outcome is CollectOutcome.BOT:
        return HttpResponse(200, "Bot detected")
    if outcome is CollectOutcome.THROTTLED:
        return HttpResponse(429, "Too Many Requests")
    return HttpResponse(200, "OK", headers=dict(NO_CACHE_HEADERS))


def handle_stats(
    aggregator: StatsAggregator,
    kind: str,
    website_id: str,
    period: str | None = None,
) -> HttpResponse:
    """
    Serve one aggregate as JSON.

    Args:
        aggregator: Stats aggregator
        kind: One of "stats", "pages", "countries", "referrers"
        website_id: Website to report on
        period: "24h", "7d", "30d" or "90d" (anything else means "7d")
    """
    readers = {
        "stats": aggregator.stats,
        "pages": aggregator.top_pages,
        "countries": aggregator.top_countries,
        "referrers": aggregator.top_referrers,
    }
    reader = readers.get(kind)
    if reader is None:
        return HttpResponse(
            404,
            json.dumps({"error": f"Unknown stats kind: {kind}"}),
            media_type="application/json",
        )

    try:
        result = reader(website_id, period)
    except Exception:
        logger.exception("Error fetching %s for website %s", kind, website_id)
        return HttpResponse(
            500,
            json.dumps({"error": f"Failed to fetch {kind}"}),
            media_type="application/json",
        )
    return HttpResponse(200, json.dumps(result), media_type="application/json")
