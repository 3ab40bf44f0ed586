"""
Trial search orchestrator.

condition + synonyms + location → recruiting trial summaries, via the
ClinicalTrials.gov client and a 5-minute in-process cache. Every failure
is returned as a TrialSearchFailed carrying a user-facing message.
"""

import asyncio
import logging

import aiohttp

from clinibridge.constants import NO_LOCATION_PREFERENCE
from clinibridge.data_sources.base_client import (
    DataSourceError,
    RateLimitError,
    SchemaMismatchError,
)
from clinibridge.data_sources.clinical_trials import ClinicalTrialsClient
from clinibridge.models.model_clinical_trials import (
    TrialSearchFailed,
    TrialSearchOk,
    TrialSearchResult,
)
from clinibridge.utils.cache import TTLCache, search_cache_key

logger = logging.getLogger(__name__)

MSG_TIMEOUT = (
    "The search timed out. ClinicalTrials.gov may be slow, please try again."
)
MSG_RATE_LIMITED = (
    "ClinicalTrials.gov is receiving too many requests right now. "
    "Please wait a minute and try again."
)
MSG_FORMAT_CHANGED = (
    "ClinicalTrials.gov returned data in an unexpected format. "
    "The format may have changed; please try again later."
)
MSG_UNREACHABLE = "Unable to reach ClinicalTrials.gov. Please try again later."

# Process-wide result cache shared by every search call
_search_cache = TTLCache()


def normalize_location(location: str | None) -> str | None:
    """Strip the location; "anywhere"-style answers mean no filter."""
    if location is None:
        return None
    location = location.strip()
    if not location or NO_LOCATION_PREFERENCE.match(location):
        return None
    return location


def build_condition_terms(condition: str, synonyms: list[str] | None = None) -> list[str]:
    """Condition first, then unique synonyms, blanks dropped."""
    terms: list[str] = []
    seen: set[str] = set()
    for term in [condition, *(synonyms or [])]:
        term = (term or "").strip()
        if term and term.lower() not in seen:
            seen.add(term.lower())
            terms.append(term)
    return terms


async def search_trials(
    condition: str,
    synonyms: list[str] | None = None,
    location: str | None = None,
    *,
    client: ClinicalTrialsClient | None = None,
    cache: TTLCache | None = None,
) -> TrialSearchResult:
    """Find recruiting trials for `condition` near `location`. Never raises.

    Results come back in upstream order, unscored.
    """
    cache = cache if cache is not None else _search_cache
    terms = build_condition_terms(condition, synonyms)
    location = normalize_location(location)

    key = search_cache_key(terms, location)
    cached = cache.get(key)
    if cached is not None:
        return TrialSearchOk(trials=list(cached), cached=True)

    owns_client = client is None
    client = client or ClinicalTrialsClient()
    try:
        trials = await client.search(terms, location)
    except asyncio.TimeoutError:
        logger.warning("Trial search timed out for %s", terms)
        return TrialSearchFailed(error=MSG_TIMEOUT)
    except RateLimitError:
        logger.warning("Trial search rate limited for %s", terms)
        return TrialSearchFailed(error=MSG_RATE_LIMITED)
    except SchemaMismatchError as e:
        logger.error("Trial search response shape changed: %s", e)
        return TrialSearchFailed(error=MSG_FORMAT_CHANGED)
    except DataSourceError as e:
        if e.status_code is None:
            logger.error("Trial search failed: %s", e)
            return TrialSearchFailed(error=MSG_UNREACHABLE)
        logger.warning("Trial search got HTTP %s", e.status_code)
        return TrialSearchFailed(
            error=f"ClinicalTrials.gov returned status {e.status_code}"
        )
    except (aiohttp.ClientError, OSError) as e:
        logger.error("Trial search could not reach upstream: %s", e)
        return TrialSearchFailed(error=MSG_UNREACHABLE)
    except Exception:
        logger.exception("Unexpected error during trial search")
        return TrialSearchFailed(error=MSG_UNREACHABLE)
    finally:
        if owns_client:
            await client.close()

    cache.set(key, trials)
    logger.info("Trial search found %d trials for %s", len(trials), terms)
    return TrialSearchOk(trials=list(trials))
