"""
Pydantic models for ClinicalTrials.gov data.

TrialRaw is the flattened registry record; TrialSummary is the stable shape
handed to the UI and to the scorer. Callers never see raw API responses.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

MatchLabel = Literal["Strong Match", "Possible Match", "Worth Exploring", "Unlikely"]

MATCH_LABELS: tuple[str, ...] = (
    "Strong Match",
    "Possible Match",
    "Worth Exploring",
    "Unlikely",
)

# ------------------------------------------------------------------
# Trial-level models
# ------------------------------------------------------------------


class TrialLocation(BaseModel):
    """One trial site."""

    facility: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None

    def display(self) -> str:
        parts = [self.facility, self.city, self.state, self.country]
        return ", ".join(p for p in parts if p)


class TrialRaw(BaseModel):
    """A single study record from ClinicalTrials.gov, flattened."""

    nct_id: str
    brief_title: str
    official_title: str | None = None
    brief_summary: str | None = None
    overall_status: str = "UNKNOWN"
    phase: str | None = None
    conditions: list[str] = []
    eligibility_criteria: str | None = None
    minimum_age: str | None = None
    maximum_age: str | None = None
    sex: str | None = None
    locations: list[TrialLocation] = []
    start_date: str | None = None
    primary_completion_date: str | None = None
    study_type: str | None = None
    enrollment_count: int | None = None
    interventions: list[str] = []  # "DRUG: Semaglutide"
    sponsor: str | None = None
    url: str


class TrialSummary(BaseModel):
    """Normalized, display- and AI-facing view of one trial."""

    nct_id: str
    title: str
    summary: str
    status: str
    phase: str
    conditions: list[str] = []
    eligibility: str  # ≤500 chars, for cards
    eligibility_full: str | None = None  # ≤1500 chars, for the scorer
    age_range: str
    age_min_years: float | None = None
    age_max_years: float | None = None
    locations: list[str] = []
    interventions: list[str] = []
    sponsor: str
    match_score: Annotated[int, Field(ge=0, le=100)] = 0  # 0 means unscored
    match_label: MatchLabel | None = None
    match_reason: str | None = None
    url: str


class FeaturedTrial(BaseModel):
    """Compact trial card for the landing page."""

    nct_id: str
    title: str  # ≤60 chars
    summary: str  # first sentence, ≤100 chars
    phase: str
    status: str = "RECRUITING"
    location_count: int = 0
    conditions: list[str] = []


# ------------------------------------------------------------------
# Patient profile
# ------------------------------------------------------------------


class PatientProfile(BaseModel):
    """What we know about the patient for one request. Never persisted as-is."""

    condition: str
    age: float
    location: str = ""
    sex: str | None = None
    medications: list[str] = []
    additional_info: str = ""


# ------------------------------------------------------------------
# Search outcome
# ------------------------------------------------------------------


class TrialSearchOk(BaseModel):
    """Successful search: zero or more trials."""

    status: Literal["ok"] = "ok"
    trials: list[TrialSummary] = []
    cached: bool = False

    @property
    def error(self) -> None:
        return None


class TrialSearchFailed(BaseModel):
    """Upstream failure recovered into a user-facing message."""

    status: Literal["error"] = "error"
    error: str

    @property
    def trials(self) -> list[TrialSummary]:
        return []


TrialSearchResult = Annotated[
    TrialSearchOk | TrialSearchFailed, Field(discriminator="status")
]
