"""Append-only log of completed searches."""

import logging
from typing import Literal

from sqlalchemy.orm import Session

from clinibridge.models.model_clinical_trials import PatientProfile, TrialSummary
from clinibridge.sqlalchemy.searches import SearchRecord

logger = logging.getLogger(__name__)


def save_search(
    db: Session,
    profile: PatientProfile,
    trials: list[TrialSummary],
    mode: Literal["form", "chat"] = "form",
) -> int:
    """Insert one search record with a snapshot of its results. Returns its id."""
    record = SearchRecord(
        mode=mode,
        condition=profile.condition,
        age=profile.age,
        location=profile.location,
        medications=profile.medications or None,
        additional_info=profile.additional_info or None,
        results=[t.model_dump(mode="json") for t in trials],
    )
    db.add(record)
    db.commit()
    logger.info("Saved %s search %d with %d results", mode, record.id, len(trials))
    return record.id


def get_search(db: Session, search_id: int) -> SearchRecord | None:
    return db.get(SearchRecord, search_id)
