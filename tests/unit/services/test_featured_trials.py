"""Unit tests for the featured trials service."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from clinibridge.data_sources.base_client import DataSourceError, SchemaMismatchError
from clinibridge.models.model_clinical_trials import FeaturedTrial
from clinibridge.services.featured_trials import (
    CATEGORY_QUERIES,
    FALLBACK_TRIALS,
    get_featured_trials,
    pad_with_fallback,
)
from clinibridge.utils.cache import TTLCache


def _card(nct_id: str) -> FeaturedTrial:
    return FeaturedTrial(
        nct_id=nct_id,
        title=f"Trial {nct_id}",
        summary="Short summary.",
        phase="Phase 2",
        location_count=4,
        conditions=["Rare Disease"],
    )


def _client(**kwargs) -> MagicMock:
    client = MagicMock()
    client.featured = AsyncMock(**kwargs)
    client.close = AsyncMock()
    return client


LIVE = [_card("NCT00000001"), _card("NCT00000002"), _card("NCT00000003")]


async def test_returns_live_trials_for_category():
    client = _client(return_value=LIVE)

    trials = await get_featured_trials("oncology", client=client, cache=TTLCache())

    assert [t.nct_id for t in trials] == ["NCT00000001", "NCT00000002", "NCT00000003"]
    client.featured.assert_awaited_once_with(CATEGORY_QUERIES["oncology"])
    client.close.assert_not_awaited()


async def test_second_call_served_from_cache():
    client = _client(return_value=LIVE)
    cache = TTLCache(ttl_seconds=3600)

    first = await get_featured_trials("neurology", client=client, cache=cache)
    second = await get_featured_trials("neurology", client=client, cache=cache)

    assert first == second
    assert client.featured.await_count == 1


async def test_categories_cached_separately():
    client = _client(return_value=LIVE)
    cache = TTLCache(ttl_seconds=3600)

    await get_featured_trials("all", client=client, cache=cache)
    await get_featured_trials("oncology", client=client, cache=cache)

    assert client.featured.await_count == 2


async def test_cache_expires_after_ttl():
    now = [0.0]
    cache = TTLCache(ttl_seconds=3600, clock=lambda: now[0])
    client = _client(return_value=LIVE)

    await get_featured_trials("all", client=client, cache=cache)
    now[0] += 3600
    await get_featured_trials("all", client=client, cache=cache)

    assert client.featured.await_count == 2


@pytest.mark.parametrize(
    "error",
    [
        asyncio.TimeoutError(),
        DataSourceError("clinical_trials", "HTTP 503", status_code=503),
        SchemaMismatchError("clinical_trials", "bad shape"),
        aiohttp.ClientConnectionError("refused"),
        RuntimeError("boom"),
    ],
)
async def test_upstream_failure_returns_fallback(error):
    cache = TTLCache()
    client = _client(side_effect=error)

    trials = await get_featured_trials("all", client=client, cache=cache)

    assert trials == list(FALLBACK_TRIALS)
    assert len(cache) == 0


async def test_no_results_returns_fallback_uncached():
    cache = TTLCache()

    trials = await get_featured_trials(
        "all", client=_client(return_value=[]), cache=cache
    )

    assert trials == list(FALLBACK_TRIALS)
    assert len(cache) == 0


async def test_short_result_padded_from_fallback():
    client = _client(return_value=[_card("NCT00000001")])

    trials = await get_featured_trials("all", client=client, cache=TTLCache())

    assert [t.nct_id for t in trials] == [
        "NCT00000001",
        FALLBACK_TRIALS[1].nct_id,
        FALLBACK_TRIALS[2].nct_id,
    ]


def test_pad_with_fallback_leaves_full_list_alone():
    assert pad_with_fallback(LIVE) == LIVE


def test_fallback_trials_are_recruiting():
    assert len(FALLBACK_TRIALS) == 3
    assert all(t.status == "RECRUITING" for t in FALLBACK_TRIALS)
