"""
Pydantic models for the eligibility explainer.

The breakdown schema is permissive on input: status spellings
are normalized, optional fields default, and unknown keys are dropped, so a
near-miss LLM response still validates.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from clinibridge.constants import ELIGIBILITY_SOURCE, REQUIRED_DISCLAIMER

CriterionStatus = Literal["met", "not_met", "unknown"]


class RawEligibility(BaseModel):
    """Eligibility fields for one trial, as fetched from the registry."""

    nct_id: str
    eligibility_criteria: str | None = None
    minimum_age: str | None = None
    maximum_age: str | None = None
    sex: str | None = None
    healthy_volunteers: str | None = None
    fetched_at: datetime


class EligibilitySections(BaseModel):
    """Criteria text split on its Inclusion/Exclusion headers."""

    inclusion: str = ""
    exclusion: str = ""
    unclassified: str = ""


class EligibilityCriterion(BaseModel):
    """One inclusion or exclusion line, rewritten and classified."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    original: str
    plain_english: str = ""
    status: CriterionStatus = "unknown"
    reason: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_camel_case(cls, values):
        if isinstance(values, dict) and "plainEnglish" in values:
            values = dict(values)
            values.setdefault("plain_english", values.pop("plainEnglish"))
        return values

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value) -> str:
        if not isinstance(value, str):
            return "unknown"
        lowered = "_".join(value.strip().lower().replace("-", " ").split())
        if lowered == "met":
            return "met"
        if lowered in ("not_met", "notmet"):
            return "not_met"
        return "unknown"

    @field_validator("plain_english", "reason", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value


class EligibilityMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: str = ELIGIBILITY_SOURCE
    criteria_present: bool = True
    notes: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_camel_case(cls, values):
        if not isinstance(values, dict):
            return values
        values = dict(values)
        if "criteriaPresent" in values:
            values.setdefault("criteria_present", values.pop("criteriaPresent"))
        if values.get("criteria_present") is None:
            values.pop("criteria_present", None)
        return values

    @field_validator("source", "notes", mode="before")
    @classmethod
    def none_to_default(cls, value, info):
        if value is None or value == "":
            return ELIGIBILITY_SOURCE if info.field_name == "source" else ""
        return value


class EligibilityBreakdown(BaseModel):
    """Inclusion/exclusion classification for one (trial, patient) pair."""

    model_config = ConfigDict(extra="ignore")

    trial_id: str = ""
    disclaimer: str = REQUIRED_DISCLAIMER
    inclusion_criteria: list[EligibilityCriterion] = []
    exclusion_criteria: list[EligibilityCriterion] = []
    preparation_checklist: list[str] = []
    meta: EligibilityMeta = EligibilityMeta()

    @model_validator(mode="before")
    @classmethod
    def accept_camel_case(cls, values):
        if not isinstance(values, dict):
            return values
        aliases = {
            "trialId": "trial_id",
            "inclusionCriteria": "inclusion_criteria",
            "exclusionCriteria": "exclusion_criteria",
            "preparationChecklist": "preparation_checklist",
        }
        values = dict(values)
        for camel, snake in aliases.items():
            if camel in values:
                values.setdefault(snake, values.pop(camel))
        # Explicit nulls fall back to defaults
        for key in (
            "trial_id",
            "disclaimer",
            "inclusion_criteria",
            "exclusion_criteria",
            "preparation_checklist",
            "meta",
        ):
            if key in values and values[key] is None:
                del values[key]
        return values
