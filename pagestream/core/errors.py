# ==============================================================================
# Pipeline Errors
# ==============================================================================
"""
Exception taxonomy for the ingestion and aggregation pipeline.

- ValidationError: inbound event is missing required fields (client error)
- ResolutionFailure: a geolocation tier failed; always handled internally
- PersistenceFailure: the durable store rejected or could not take a write/read
- CacheUnavailable: the key-value cache could not be reached; callers bypass it

Bot filtering is not an error and has no exception type.
"""


class PagestreamError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(PagestreamError):
    """Inbound event failed validation."""

    def __init__(self, message: str = "Missing required fields", fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class ResolutionFailure(PagestreamError):
    """A geolocation tier could not resolve an address because it errored."""

    def __init__(self, tier: str, ip: str, cause: Exception | None = None):
        super().__init__(f"{tier} tier failed for {ip}: {cause}")
        self.tier = tier
        self.ip = ip
        self.cause = cause


class PersistenceFailure(PagestreamError):
    """The durable store is unreachable or rejected an operation."""


class CacheUnavailable(PagestreamError):
    """The key-value cache is unreachable.

    Distinct from a cache miss: callers must not follow it with a cache write
    and should serve directly from the durable store.
    """
