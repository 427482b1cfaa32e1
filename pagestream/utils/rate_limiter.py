# ==============================================================================
# Token Bucket Rate Limiter
# ==============================================================================
"""
Token bucket rate limiter used for admission control.

Tokens accumulate at a fixed rate up to a burst cap. ``try_acquire()`` never
blocks; it returns ``False`` when the bucket is empty so the caller can shed
the work instead. The collect path and the remote geolocation tier both work
this way.

Usage::

    limiter = TokenBucketRateLimiter(rate=500)
    if not limiter.try_acquire():
        return throttled()
"""

import threading
import time


class TokenBucketRateLimiter:
    """Rate limiter using the token bucket algorithm.

    Args:
        rate: Tokens added per second.
        burst: Maximum burst size (tokens the bucket can hold).
            Defaults to ``max(int(rate * 0.1), 100)``.
    """

    def __init__(
        self,
        rate: float,
        burst: int | None = None,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")

        self.rate = rate
        self.burst = burst if burst is not None else max(int(rate * 0.1), 100)
        self._lock = threading.Lock()

        # Start with a full bucket so the first burst goes through immediately.
        self._tokens: float = float(self.burst)
        self._last_refill: float = time.monotonic()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def try_acquire(self, count: int = 1) -> bool:
        """Consume *count* tokens if available without waiting.

        Returns:
            True if the tokens were consumed, False if the bucket was short.
        """
        with self._lock:
            self._refill()
            if self._tokens < count:
                return False
            self._tokens -= count
            return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _refill(self) -> None:
        """Add tokens based on elapsed time since the last refill."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._last_refill = now
        self._tokens = min(self._tokens + elapsed * self.rate, float(self.burst))
