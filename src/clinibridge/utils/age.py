"""
Age normalizer.

Converts the registry's free-text age bounds ("2 Years", "6 Months",
"Adult", "N/A") into numeric year bounds. Unparseable input yields None,
never an exception.
"""

import re

from pydantic import BaseModel

_EMPTY_TOKENS: frozenset[str] = frozenset(
    {"", "n/a", "na", "not applicable", "not specified", "none"}
)
_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")

# Unit keyword → divisor converting that unit to years
_UNIT_DIVISORS: tuple[tuple[str, int], ...] = (
    ("month", 12),
    ("week", 52),
    ("day", 365),
)


class AgeBounds(BaseModel):
    """Numeric age bounds in years. None means no bound could be read."""

    min_years: float | None = None
    max_years: float | None = None


def normalize_age_bounds(
    raw_min: str | None = None, raw_max: str | None = None
) -> AgeBounds:
    """Convert raw minimum/maximum age strings into numeric year bounds."""
    min_years = parse_age_to_years(raw_min)
    if min_years is None:
        min_years = _keyword_min(raw_min)

    max_years = parse_age_to_years(raw_max)
    if max_years is None:
        max_years = _keyword_max(raw_max)

    return AgeBounds(min_years=min_years, max_years=max_years)


def parse_age_to_years(raw: str | None) -> float | None:
    """Read the first number in `raw`, converting months/weeks/days to years."""
    normalized = _clean(raw)
    if normalized is None:
        return None

    match = _NUMBER.search(normalized)
    if not match:
        return None
    value = float(match.group(1))

    for unit, divisor in _UNIT_DIVISORS:
        if unit in normalized:
            return round(value / divisor, 2)
    return value


def _keyword_min(raw: str | None) -> float | None:
    normalized = _clean(raw)
    if normalized is None:
        return None
    if "older adult" in normalized:
        return 65
    if "adult" in normalized:
        return 18
    if "child" in normalized or "pediatric" in normalized:
        return 0
    return None


def _keyword_max(raw: str | None) -> float | None:
    normalized = _clean(raw)
    if normalized is None:
        return None
    if "child" in normalized or "pediatric" in normalized:
        return 17
    if "adult" in normalized:
        return 64
    return None


def _clean(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in _EMPTY_TOKENS:
        return None
    return normalized
