"""Data models for CliniBridge."""

from clinibridge.models.model_clinical_trials import (
    PatientProfile,
    TrialLocation,
    TrialRaw,
    TrialSearchFailed,
    TrialSearchOk,
    TrialSummary,
)
from clinibridge.models.model_eligibility import (
    EligibilityBreakdown,
    EligibilityCriterion,
    RawEligibility,
)

__all__ = [
    "EligibilityBreakdown",
    "EligibilityCriterion",
    "PatientProfile",
    "RawEligibility",
    "TrialLocation",
    "TrialRaw",
    "TrialSearchFailed",
    "TrialSearchOk",
    "TrialSummary",
]
