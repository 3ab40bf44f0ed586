"""
Base client for external data source clients.

Provides: a lazily created aiohttp session, per-request timeouts, retry on
429/5xx and timeouts with a fixed backoff schedule, and structured logging.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import aiohttp
from pydantic import BaseModel

from clinibridge.constants import RATE_LIMITED_STATUS, RETRY_BACKOFF_SECONDS

logger = logging.getLogger("clinibridge.data_sources")


# ---------------------------------------------------------------------------
# Request context (for structured logging)
# ---------------------------------------------------------------------------


class RequestContext(BaseModel):
    """Metadata attached to every outgoing request for logging."""

    source: str  # e.g. "clinical_trials"
    method: str  # e.g. "search"
    params: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


class FetchResponse(BaseModel):
    """Status and body of the final attempt of a request."""

    status: int
    body: str = ""
    attempts: int = 1
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def parse_json(self) -> Any:
        return json.loads(self.body)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DataSourceError(Exception):
    """Base exception for data source failures."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"[{source}] {message}")


class RateLimitError(DataSourceError):
    """Raised when the upstream is still rate limiting after all retries."""

    pass


class SchemaMismatchError(DataSourceError):
    """Raised when a response body does not have the expected structure."""

    pass


def is_retryable_status(status: int) -> bool:
    """429 or any 5xx."""
    return status == RATE_LIMITED_STATUS or 500 <= status < 600


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class BaseClient(ABC):
    """
    Abstract base for registry clients.

    Subclasses implement `_source_name` and their own typed methods that
    call `_fetch()`.
    """

    def __init__(self, backoff_seconds: Sequence[float] = RETRY_BACKOFF_SECONDS):
        self.backoff_seconds = tuple(backoff_seconds)
        self._session: aiohttp.ClientSession | None = None

    @property
    @abstractmethod
    def _source_name(self) -> str:
        """Identifier for this data source, e.g. 'clinical_trials'."""
        ...

    # -- Session management --------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"}
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # -- Core request with timeout + retry -----------------------------------

    async def _fetch(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        timeout_seconds: float,
        context: RequestContext | None = None,
    ) -> FetchResponse:
        """
        GET `url`, retrying on 429, on any 5xx and on timeout.

        Attempts are spaced by `backoff_seconds`, so there are at most
        len(backoff_seconds) retries. A non-retryable status (including 4xx
        other than 429) is returned immediately. When retries run out on a
        retryable status, that last response is returned; when they run out
        on a timeout, asyncio.TimeoutError propagates. Connection errors are
        not retried.
        """
        ctx = context or RequestContext(source=self._source_name, method="unknown")
        start = time.monotonic()
        max_attempts = len(self.backoff_seconds) + 1

        for attempt in range(max_attempts):
            can_retry = attempt < len(self.backoff_seconds)
            session = await self._get_session()

            logger.info(
                "Request [%s.%s] attempt=%d url=%s",
                ctx.source,
                ctx.method,
                attempt + 1,
                url,
            )

            try:
                status, body = await asyncio.wait_for(
                    self._send(session, url, params), timeout=timeout_seconds
                )
            except asyncio.TimeoutError:
                elapsed = time.monotonic() - start
                logger.warning(
                    "Timeout [%s.%s] attempt=%d elapsed=%.1fs",
                    ctx.source,
                    ctx.method,
                    attempt + 1,
                    elapsed,
                )
                if not can_retry:
                    raise
                await asyncio.sleep(self.backoff_seconds[attempt])
                continue

            if is_retryable_status(status) and can_retry:
                logger.warning(
                    "Retryable %d from %s.%s: %s",
                    status,
                    ctx.source,
                    ctx.method,
                    body[:200],
                )
                await asyncio.sleep(self.backoff_seconds[attempt])
                continue

            elapsed = time.monotonic() - start
            logger.info(
                "Response [%s.%s] status=%d attempts=%d elapsed=%.2fs",
                ctx.source,
                ctx.method,
                status,
                attempt + 1,
                elapsed,
            )
            return FetchResponse(
                status=status,
                body=body,
                attempts=attempt + 1,
                elapsed_seconds=elapsed,
            )

        # Unreachable: the last attempt either returns or raises
        raise DataSourceError(ctx.source, "Retry budget exhausted")

    @staticmethod
    async def _send(
        session: aiohttp.ClientSession, url: str, params: dict[str, Any] | None
    ) -> tuple[int, str]:
        resp = await session.get(url, params=params)
        body = await resp.text()
        return resp.status, body
