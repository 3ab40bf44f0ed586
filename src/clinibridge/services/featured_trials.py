"""
Featured trials for the landing page.

One fixed query per category, cached for an hour. Upstream failures fall
back to a static list so the page always has three cards to show.
"""

import asyncio
import logging
from typing import Literal

import aiohttp

from clinibridge.constants import FEATURED_CACHE_TTL, FEATURED_PAGE_SIZE
from clinibridge.data_sources.base_client import DataSourceError
from clinibridge.data_sources.clinical_trials import ClinicalTrialsClient
from clinibridge.models.model_clinical_trials import FeaturedTrial
from clinibridge.utils.cache import TTLCache

logger = logging.getLogger(__name__)

FeaturedCategory = Literal["all", "oncology", "neurology"]

CATEGORY_QUERIES: dict[str, str] = {
    "all": "rare disease",
    "oncology": "rare cancer",
    "neurology": "rare neurological disease",
}

FALLBACK_TRIALS: tuple[FeaturedTrial, ...] = (
    FeaturedTrial(
        nct_id="NCT06345678",
        title="Gene Therapy for Spinal Muscular Atrophy in Infants",
        summary=(
            "A phase 3, open-label study evaluating a one-time intravenous infusion "
            "of gene replacement therapy in patients with spinal muscular atrophy."
        ),
        phase="Phase 3",
        location_count=38,
        conditions=["Spinal Muscular Atrophy"],
    ),
    FeaturedTrial(
        nct_id="NCT05876543",
        title="CAR-T Cell Therapy for Relapsed B-Cell Lymphoma",
        summary=(
            "Evaluating the safety and efficacy of autologous CAR-T cells in adults "
            "with relapsed or refractory B-cell lymphoma."
        ),
        phase="Phase 2",
        location_count=22,
        conditions=["B-Cell Lymphoma"],
    ),
    FeaturedTrial(
        nct_id="NCT06198765",
        title="Antisense Oligonucleotide for Huntington Disease",
        summary=(
            "A randomized, double-blind study of an intrathecally administered "
            "antisense oligonucleotide in early manifest Huntington disease."
        ),
        phase="Phase 1/Phase 2",
        location_count=14,
        conditions=["Huntington Disease"],
    ),
)

_featured_cache = TTLCache(ttl_seconds=FEATURED_CACHE_TTL)


def pad_with_fallback(trials: list[FeaturedTrial]) -> list[FeaturedTrial]:
    """Fill up to FEATURED_PAGE_SIZE cards from the static list, by position."""
    padded = list(trials[:FEATURED_PAGE_SIZE])
    while len(padded) < FEATURED_PAGE_SIZE:
        padded.append(FALLBACK_TRIALS[len(padded)])
    return padded


async def get_featured_trials(
    category: FeaturedCategory = "all",
    *,
    client: ClinicalTrialsClient | None = None,
    cache: TTLCache | None = None,
) -> list[FeaturedTrial]:
    """Three featured trials for `category`. Never raises.

    Only live results are cached; a fallback answer is retried on the next call.
    """
    cache = cache if cache is not None else _featured_cache
    query = CATEGORY_QUERIES.get(category, CATEGORY_QUERIES["all"])

    cached = cache.get(category)
    if cached is not None:
        return list(cached)

    owns_client = client is None
    client = client or ClinicalTrialsClient()
    try:
        trials = await client.featured(query)
    except asyncio.TimeoutError:
        logger.warning("Featured trials timed out for %s", category)
        return list(FALLBACK_TRIALS)
    except (DataSourceError, aiohttp.ClientError, OSError) as e:
        logger.error("Failed to fetch featured trials for %s: %s", category, e)
        return list(FALLBACK_TRIALS)
    except Exception:
        logger.exception("Unexpected error fetching featured trials")
        return list(FALLBACK_TRIALS)
    finally:
        if owns_client:
            await client.close()

    if not trials:
        logger.info("No featured trials for %s, using fallback", category)
        return list(FALLBACK_TRIALS)

    trials = pad_with_fallback(trials)
    cache.set(category, trials)
    return list(trials)
