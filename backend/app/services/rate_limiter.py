"""
Fixed-window rate limiter for the contact form, built on ``limits``.

Each client key (the remote address) gets ``rate`` hits, e.g. "5/hour". The
window opens on the first hit from a key and the count resets once it has
elapsed. Hits beyond the quota are rejected and do not extend the window.

Counters live in a ``limits`` storage backend. The default MemoryStorage is
process-local and expires windows on its own; pass another storage (or a
fresh MemoryStorage in tests) to the constructor to swap it out.
"""

import math
import time
from dataclasses import dataclass
from typing import Optional

from limits import parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

# Namespace for the counter keys, so other limits on the same storage don't collide
CONTACT_NAMESPACE = "contact"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single hit."""

    allowed: bool
    limit: int
    remaining: int
    reset_in: int  # seconds until the current window closes (rounded up)

    def headers(self) -> dict[str, str]:
        """Standard RateLimit-* response headers for this result."""
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers


class ContactRateLimiter:
    def __init__(self, rate: str, storage: Optional[Storage] = None):
        # parse() raises ValueError for anything that isn't "<n>/<period>"
        self.item = parse(rate)
        self.storage = storage if storage is not None else MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self.storage)

    @property
    def limit(self) -> int:
        return self.item.amount

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for key and report whether it is allowed."""
        allowed = self._strategy.hit(self.item, CONTACT_NAMESPACE, key)
        stats = self._strategy.get_window_stats(self.item, CONTACT_NAMESPACE, key)
        reset_in = max(0, math.ceil(stats.reset_time - time.time()))
        return RateLimitResult(allowed, self.limit, stats.remaining, reset_in)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when key is None."""
        if key is None:
            self.storage.reset()
        else:
            self._strategy.clear(self.item, CONTACT_NAMESPACE, key)
