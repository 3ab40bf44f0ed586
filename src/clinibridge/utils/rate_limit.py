"""
Fixed-window rate limiter for inbound API requests.

Each key (usually a client IP) gets `limit` requests per window. The first
request after a window has elapsed opens a new one.
"""

import math
import time
from collections.abc import Callable, Mapping

from pydantic import BaseModel


class RateLimitResult(BaseModel):
    """Outcome of one rate-limit check."""

    ok: bool
    remaining: int
    limit: int
    reset_at: float  # clock time at which the current window closes
    retry_after_seconds: int


class FixedWindowRateLimiter:
    """In-process fixed-window counter keyed by client."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._buckets: dict[str, tuple[int, float]] = {}  # key → (count, reset_at)

    def check(self, key: str) -> RateLimitResult:
        now = self._clock()
        self.purge_expired(now)
        count, reset_at = self._buckets.get(key, (0, 0.0))

        if reset_at <= now:
            reset_at = now + self.window
            self._buckets[key] = (1, reset_at)
            return RateLimitResult(
                ok=True,
                remaining=self.limit - 1,
                limit=self.limit,
                reset_at=reset_at,
                retry_after_seconds=math.ceil(self.window),
            )

        retry_after = max(1, math.ceil(reset_at - now))
        if count >= self.limit:
            return RateLimitResult(
                ok=False,
                remaining=0,
                limit=self.limit,
                reset_at=reset_at,
                retry_after_seconds=retry_after,
            )

        count += 1
        self._buckets[key] = (count, reset_at)
        return RateLimitResult(
            ok=True,
            remaining=self.limit - count,
            limit=self.limit,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def purge_expired(self, now: float | None = None) -> int:
        """Drop every closed window. Returns how many keys were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, (_, reset_at) in self._buckets.items() if reset_at <= now]
        for key in expired:
            del self._buckets[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._buckets)


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Best-effort client address from proxy headers."""
    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    return "unknown"
