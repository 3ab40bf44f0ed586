"""Project-wide constants."""

import re

# -- Base client defaults ---------------------------------------------------
# Fixed backoff schedule: at most len(RETRY_BACKOFF_SECONDS) retries.
RETRY_BACKOFF_SECONDS: tuple[float, ...] = (1.0, 2.0)
RATE_LIMITED_STATUS: int = 429  # retried along with every 5xx

# -- ClinicalTrials.gov -----------------------------------------------------
CLINICAL_TRIALS_BASE_URL: str = "https://clinicaltrials.gov/api/v2/studies"
CLINICAL_TRIALS_STUDY_URL: str = "https://clinicaltrials.gov/study"
CLINICAL_TRIALS_PAGE_SIZE: int = 10
CLINICAL_TRIALS_RECRUITING: str = "RECRUITING"
SEARCH_TIMEOUT: float = 15.0
SEARCH_TIMEOUT_WITH_LOCATION: float = 25.0
STUDY_TIMEOUT: float = 15.0
FEATURED_TIMEOUT: float = 12.0
FEATURED_PAGE_SIZE: int = 3
FEATURED_SORT: str = "LastUpdatePostDate:desc"
FEATURED_TITLE_CHARS: int = 60
FEATURED_SUMMARY_CHARS: int = 100

# -- Search cache -----------------------------------------------------------
SEARCH_CACHE_TTL: int = 5 * 60  # seconds
FEATURED_CACHE_TTL: int = 60 * 60  # seconds

# -- Trial summary ----------------------------------------------------------
MAX_DISPLAY_LOCATIONS: int = 3
ELIGIBILITY_EXCERPT_CHARS: int = 500
ELIGIBILITY_AI_CHARS: int = 1500
NOT_SPECIFIED: str = "Not specified"
NO_SUMMARY: str = "No summary available."
NO_ELIGIBILITY: str = "See full listing for eligibility details."

# Location phrases that mean "no location filter".
NO_LOCATION_PREFERENCE = re.compile(
    r"^\s*(any|any\s*where|any\s+location|everywhere|world\s*wide|"
    r"global(ly)?|international(ly)?|no\s+preference|none|n/?a|"
    r"(it\s+)?(doesn'?t|does\s+not)\s+matter)\s*[.!]?\s*$",
    re.IGNORECASE,
)

# -- Eligibility explainer --------------------------------------------------
ELIGIBILITY_CONTEXT_MAX_CHARS: int = 8000
ELIGIBILITY_CONTEXT_TRIM_TO: int = 7500
ELIGIBILITY_TRIM_NOTICE: str = (
    "\n\n[Criteria text was trimmed for processing. Some criteria may be missing.]"
)
ELIGIBILITY_SOURCE: str = "clinicaltrials.gov"
REQUIRED_DISCLAIMER: str = (
    "This breakdown helps you understand what the trial requires. "
    "Only the trial's research team can confirm eligibility after formal screening."
)
FALLBACK_CHECKLIST: tuple[str, ...] = (
    "Contact the research team directly to discuss eligibility requirements.",
    "Bring a list of your current medications and medical history.",
)

# -- Registry phase codes → display labels ----------------------------------
PHASE_LABELS: dict[str, str] = {
    "EARLY_PHASE1": "Early Phase 1",
    "PHASE1": "Phase 1",
    "PHASE2": "Phase 2",
    "PHASE3": "Phase 3",
    "PHASE4": "Phase 4",
    "NA": "Not Applicable",
}

# -- Inbound search rate limit ----------------------------------------------
RATE_LIMIT_MESSAGE: str = "Rate limit reached. Please try again shortly."
