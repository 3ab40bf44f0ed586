"""
In-process TTL cache for trial search results.

Entries are {"expires_at": ..., "data": ...} keyed by a JSON string of the
normalized query. Expiry is checked on read: a stale entry is treated as a
miss and is overwritten by the next `set` for that key. `set` also sweeps
expired entries so a long-running process does not accumulate them.
"""

import json
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from clinibridge.constants import SEARCH_CACHE_TTL

logger = logging.getLogger(__name__)


def search_cache_key(terms: Iterable[str], location: str | None) -> str:
    """Return an order-independent, case-normalized key for a trial search.

    ["Lung Cancer", "NSCLC"] / "Boston" and ["nsclc", "lung cancer"] / "boston"
    produce the same key.
    """
    normalized_terms = sorted({t.strip().lower() for t in terms if t and t.strip()})
    normalized_location = (location or "").strip().lower()
    return json.dumps(
        {"terms": normalized_terms, "location": normalized_location},
        sort_keys=True,
    )


class TTLCache:
    """Dictionary-backed cache whose entries expire `ttl_seconds` after writing.

    There is no locking: concurrent writes for the same key are
    last-write-wins, which is fine because every value is a re-derivation of
    the same upstream data.
    """

    def __init__(
        self,
        ttl_seconds: float = SEARCH_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss for %s", key)
            return None
        if entry["expires_at"] <= self._clock():
            logger.debug("Cache expired for %s", key)
            return None
        logger.debug("Cache hit for %s", key)
        return entry["data"]

    def set(self, key: str, data: Any) -> None:
        now = self._clock()
        self.purge_expired(now)
        self._entries[key] = {"expires_at": now + self.ttl, "data": data}

    def purge_expired(self, now: float | None = None) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, e in self._entries.items() if e["expires_at"] <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
