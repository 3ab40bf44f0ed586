"""
Raw eligibility caches, keyed by NCT ID.

Only registry fields are cached, never the LLM breakdown, which depends on
the patient profile. Entries do not expire: a trial's criteria text is
treated as static.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinibridge.models.model_eligibility import RawEligibility
from clinibridge.sqlalchemy.eligibility_cache import EligibilityCacheRow

logger = logging.getLogger(__name__)


class EligibilityCache(Protocol):
    def get(self, nct_id: str) -> RawEligibility | None: ...

    def set(self, raw: RawEligibility) -> None: ...


class MemoryEligibilityCache:
    """Process-local cache."""

    def __init__(self) -> None:
        self._entries: dict[str, RawEligibility] = {}

    def get(self, nct_id: str) -> RawEligibility | None:
        return self._entries.get(nct_id)

    def set(self, raw: RawEligibility) -> None:
        self._entries[raw.nct_id] = raw

    def __len__(self) -> int:
        return len(self._entries)


class SqlEligibilityCache:
    """Cache persisted in the eligibility_cache table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, nct_id: str) -> RawEligibility | None:
        with self._session_factory() as db:
            row = db.scalar(
                select(EligibilityCacheRow).where(EligibilityCacheRow.nct_id == nct_id)
            )
            if row is None:
                return None
            return RawEligibility(
                nct_id=row.nct_id,
                eligibility_criteria=row.eligibility_criteria,
                minimum_age=row.minimum_age,
                maximum_age=row.maximum_age,
                sex=row.sex,
                healthy_volunteers=row.healthy_volunteers,
                fetched_at=_as_utc(row.fetched_at),
            )

    def set(self, raw: RawEligibility) -> None:
        with self._session_factory() as db:
            row = db.get(EligibilityCacheRow, raw.nct_id)
            if row is None:
                row = EligibilityCacheRow(nct_id=raw.nct_id)
                db.add(row)
            row.eligibility_criteria = raw.eligibility_criteria
            row.minimum_age = raw.minimum_age
            row.maximum_age = raw.maximum_age
            row.sex = raw.sex
            row.healthy_volunteers = raw.healthy_volunteers
            row.fetched_at = raw.fetched_at
            db.commit()
        logger.debug("Stored eligibility for %s", raw.nct_id)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on read
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
