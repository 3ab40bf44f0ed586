"""
ClinicalTrials.gov REST API v2 client.

Three network methods:
  1. search: condition terms (+ optional location) → recruiting trial summaries
  2. get_eligibility: NCT ID → raw eligibility fields for one study
  3. featured: one category query → a few recently updated trial cards

plus the parsers that flatten v2 study documents into TrialRaw and
normalize them into TrialSummary.
"""

from __future__ import annotations

import html
import json
import re
from datetime import datetime, timezone
from typing import Any

from clinibridge.constants import (
    CLINICAL_TRIALS_BASE_URL,
    CLINICAL_TRIALS_PAGE_SIZE,
    CLINICAL_TRIALS_RECRUITING,
    CLINICAL_TRIALS_STUDY_URL,
    ELIGIBILITY_AI_CHARS,
    ELIGIBILITY_EXCERPT_CHARS,
    FEATURED_PAGE_SIZE,
    FEATURED_SORT,
    FEATURED_SUMMARY_CHARS,
    FEATURED_TIMEOUT,
    FEATURED_TITLE_CHARS,
    MAX_DISPLAY_LOCATIONS,
    NO_ELIGIBILITY,
    NO_SUMMARY,
    NOT_SPECIFIED,
    PHASE_LABELS,
    SEARCH_TIMEOUT,
    SEARCH_TIMEOUT_WITH_LOCATION,
    STUDY_TIMEOUT,
)
from clinibridge.data_sources.base_client import (
    BaseClient,
    DataSourceError,
    FetchResponse,
    RateLimitError,
    RequestContext,
    SchemaMismatchError,
)
from clinibridge.models.model_clinical_trials import (
    FeaturedTrial,
    TrialLocation,
    TrialRaw,
    TrialSummary,
)
from clinibridge.models.model_eligibility import RawEligibility
from clinibridge.utils.age import normalize_age_bounds

_HORIZONTAL_WS = re.compile(r"[ \t\f\v\xa0]+")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")
_SENTENCE_END = re.compile(r"\.\s")


class ClinicalTrialsClient(BaseClient):
    BASE_URL = CLINICAL_TRIALS_BASE_URL
    PAGE_SIZE = CLINICAL_TRIALS_PAGE_SIZE

    @property
    def _source_name(self) -> str:
        return "clinical_trials"

    # ------------------------------------------------------------------
    # Public: search
    # ------------------------------------------------------------------

    async def search(
        self, condition_terms: list[str], location: str | None = None
    ) -> list[TrialSummary]:
        """Recruiting trials for any of `condition_terms`, in upstream order.

        Raises RateLimitError / DataSourceError for non-OK statuses,
        SchemaMismatchError when the body is not a v2 study list, and
        asyncio.TimeoutError when every attempt timed out.
        """
        params = self._build_search_params(condition_terms, location)
        # Location-constrained queries are noticeably slower upstream
        timeout = SEARCH_TIMEOUT_WITH_LOCATION if location else SEARCH_TIMEOUT
        resp = await self._fetch(
            self.BASE_URL,
            params=params,
            timeout_seconds=timeout,
            context=RequestContext(
                source=self._source_name, method="search", params=params
            ),
        )
        data = self._checked_json(resp)
        return [self.normalize_to_summary(t) for t in self.parse_studies(data)]

    # ------------------------------------------------------------------
    # Public: get_eligibility
    # ------------------------------------------------------------------

    async def get_study(self, nct_id: str) -> dict[str, Any]:
        """Fetch one study document."""
        resp = await self._fetch(
            f"{self.BASE_URL}/{nct_id}",
            params={"format": "json"},
            timeout_seconds=STUDY_TIMEOUT,
            context=RequestContext(
                source=self._source_name, method="get_study", params={"nct_id": nct_id}
            ),
        )
        data = self._checked_json(resp)
        if not isinstance(data, dict):
            raise SchemaMismatchError(self._source_name, "Study is not a JSON object")
        return data

    async def get_eligibility(self, nct_id: str) -> RawEligibility:
        """Eligibility module fields for one study."""
        study = await self.get_study(nct_id)
        return self.parse_eligibility(nct_id, study)

    # ------------------------------------------------------------------
    # Public: featured
    # ------------------------------------------------------------------

    async def featured(self, query: str) -> list[FeaturedTrial]:
        """Most recently updated recruiting trials for `query`, as cards."""
        params: dict[str, Any] = {
            "query.cond": query,
            "filter.overallStatus": CLINICAL_TRIALS_RECRUITING,
            "pageSize": FEATURED_PAGE_SIZE,
            "sort": FEATURED_SORT,
            "format": "json",
        }
        resp = await self._fetch(
            self.BASE_URL,
            params=params,
            timeout_seconds=FEATURED_TIMEOUT,
            context=RequestContext(
                source=self._source_name, method="featured", params=params
            ),
        )
        data = self._checked_json(resp)
        if not isinstance(data, dict) or not isinstance(data.get("studies"), list):
            raise SchemaMismatchError(
                self._source_name, "Expected an object with a 'studies' list"
            )
        cards = (self.parse_featured(s) for s in data["studies"])
        return [c for c in cards if c is not None][:FEATURED_PAGE_SIZE]

    # ------------------------------------------------------------------
    # Private: parameter building / response checks
    # ------------------------------------------------------------------

    def _build_search_params(
        self, condition_terms: list[str], location: str | None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "query.cond": " OR ".join(t for t in condition_terms if t),
            "filter.overallStatus": CLINICAL_TRIALS_RECRUITING,
            "pageSize": self.PAGE_SIZE,
            "format": "json",
        }
        if location:
            params["query.locn"] = location
        return params

    def _checked_json(self, resp: FetchResponse) -> Any:
        if resp.status == 429:
            raise RateLimitError(
                self._source_name, "HTTP 429: rate limited", status_code=429
            )
        if not resp.ok:
            raise DataSourceError(
                self._source_name,
                f"HTTP {resp.status}: {resp.body[:500]}",
                status_code=resp.status,
            )
        try:
            return resp.parse_json()
        except json.JSONDecodeError as e:
            raise SchemaMismatchError(
                self._source_name, f"Response is not JSON: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Parsers: v2 API response → Pydantic models
    # ------------------------------------------------------------------

    @classmethod
    def parse_studies(cls, data: Any) -> list[TrialRaw]:
        """Parse a search response. Invalid records are skipped, not fatal."""
        if not isinstance(data, dict) or not isinstance(data.get("studies"), list):
            raise SchemaMismatchError(
                "clinical_trials", "Expected an object with a 'studies' list"
            )
        trials = (cls.parse_raw_trial(s) for s in data["studies"])
        return [t for t in trials if t is not None]

    @classmethod
    def parse_raw_trial(cls, study: Any) -> TrialRaw | None:
        """Flatten one study document. None if it lacks an NCT ID or brief title."""
        if not isinstance(study, dict):
            return None
        proto = study.get("protocolSection")
        if not isinstance(proto, dict):
            return None

        ident = _module(proto, "identificationModule")
        status = _module(proto, "statusModule")
        desc = _module(proto, "descriptionModule")
        design = _module(proto, "designModule")
        elig = _module(proto, "eligibilityModule")
        contacts = _module(proto, "contactsLocationsModule")
        arms = _module(proto, "armsInterventionsModule")
        sponsor_mod = _module(proto, "sponsorCollaboratorsModule")
        cond_mod = _module(proto, "conditionsModule")

        nct_id = _str(ident.get("nctId"))
        brief_title = _str(ident.get("briefTitle"))
        if not nct_id or not brief_title:
            return None

        locations = [
            TrialLocation(
                facility=_str(loc.get("facility")),
                city=_str(loc.get("city")),
                state=_str(loc.get("state")),
                country=_str(loc.get("country")),
            )
            for loc in _list(contacts.get("locations"))
            if isinstance(loc, dict)
        ]

        interventions: list[str] = []
        for i in _list(arms.get("interventions")):
            if not isinstance(i, dict):
                continue
            name = _str(i.get("name"))
            kind = _str(i.get("type"))
            if name:
                interventions.append(f"{kind}: {name}" if kind else name)

        criteria = _str(elig.get("eligibilityCriteria"))
        enrollment = _module(design, "enrollmentInfo").get("count")
        lead_sponsor = _module(sponsor_mod, "leadSponsor")

        return TrialRaw(
            nct_id=nct_id,
            brief_title=brief_title,
            official_title=_str(ident.get("officialTitle")),
            brief_summary=_str(desc.get("briefSummary")),
            overall_status=_str(status.get("overallStatus")) or "UNKNOWN",
            phase=cls._normalize_phase(_list(design.get("phases"))),
            conditions=[c for c in _list(cond_mod.get("conditions")) if isinstance(c, str)],
            eligibility_criteria=(
                cls.sanitize_eligibility_text(criteria) if criteria else None
            ),
            minimum_age=_str(elig.get("minimumAge")),
            maximum_age=_str(elig.get("maximumAge")),
            sex=_str(elig.get("sex")),
            locations=locations,
            start_date=cls._extract_date(status.get("startDateStruct")),
            primary_completion_date=cls._extract_date(
                status.get("primaryCompletionDateStruct")
            ),
            study_type=_str(design.get("studyType")),
            enrollment_count=enrollment if isinstance(enrollment, int) else None,
            interventions=interventions,
            sponsor=_str(lead_sponsor.get("name")),
            url=f"{CLINICAL_TRIALS_STUDY_URL}/{nct_id}",
        )

    @classmethod
    def normalize_to_summary(cls, raw: TrialRaw) -> TrialSummary:
        """Build the display/AI summary for one parsed trial."""
        if raw.minimum_age and raw.maximum_age:
            age_range = f"{raw.minimum_age} - {raw.maximum_age}"
        elif raw.minimum_age:
            age_range = f"{raw.minimum_age}+"
        elif raw.maximum_age:
            age_range = f"Up to {raw.maximum_age}"
        else:
            age_range = NOT_SPECIFIED

        bounds = normalize_age_bounds(raw.minimum_age, raw.maximum_age)

        locations = [loc.display() for loc in raw.locations]
        locations = [loc for loc in locations if loc][:MAX_DISPLAY_LOCATIONS]

        criteria = raw.eligibility_criteria
        return TrialSummary(
            nct_id=raw.nct_id,
            title=raw.brief_title,
            summary=raw.brief_summary or NO_SUMMARY,
            status=raw.overall_status,
            phase=raw.phase or NOT_SPECIFIED,
            conditions=raw.conditions,
            eligibility=(
                cls._truncate(criteria, ELIGIBILITY_EXCERPT_CHARS)
                if criteria
                else NO_ELIGIBILITY
            ),
            eligibility_full=(
                cls._truncate(criteria, ELIGIBILITY_AI_CHARS) if criteria else None
            ),
            age_range=age_range,
            age_min_years=bounds.min_years,
            age_max_years=bounds.max_years,
            locations=locations,
            interventions=raw.interventions,
            sponsor=raw.sponsor or NOT_SPECIFIED,
            url=raw.url,
        )

    @classmethod
    def parse_featured(cls, study: Any) -> FeaturedTrial | None:
        """Shorten one study document into a card. None without NCT ID or title."""
        if not isinstance(study, dict):
            return None
        proto = study.get("protocolSection")
        if not isinstance(proto, dict):
            return None

        ident = _module(proto, "identificationModule")
        nct_id = _str(ident.get("nctId"))
        brief_title = _str(ident.get("briefTitle"))
        if not nct_id or not brief_title:
            return None

        desc = _module(proto, "descriptionModule")
        summary = _str(desc.get("briefSummary")) or NO_SUMMARY
        first_sentence = _SENTENCE_END.split(summary, maxsplit=1)[0]
        if len(first_sentence) > FEATURED_SUMMARY_CHARS:
            first_sentence = first_sentence[: FEATURED_SUMMARY_CHARS - 3] + "..."
        elif not first_sentence.endswith("."):
            first_sentence += "."

        title = brief_title
        if len(title) > FEATURED_TITLE_CHARS:
            title = title[: FEATURED_TITLE_CHARS - 3] + "..."

        design = _module(proto, "designModule")
        contacts = _module(proto, "contactsLocationsModule")
        cond_mod = _module(proto, "conditionsModule")
        return FeaturedTrial(
            nct_id=nct_id,
            title=title,
            summary=first_sentence,
            phase=cls._normalize_phase(_list(design.get("phases"))) or NOT_SPECIFIED,
            status=_str(_module(proto, "statusModule").get("overallStatus"))
            or CLINICAL_TRIALS_RECRUITING,
            location_count=len(_list(contacts.get("locations"))),
            conditions=[c for c in _list(cond_mod.get("conditions")) if isinstance(c, str)],
        )

    @classmethod
    def parse_eligibility(
        cls,
        nct_id: str,
        study: dict[str, Any],
        fetched_at: datetime | None = None,
    ) -> RawEligibility:
        """Extract the eligibility module of a single-study document."""
        proto = study.get("protocolSection")
        elig = _module(proto, "eligibilityModule") if isinstance(proto, dict) else {}
        criteria = _str(elig.get("eligibilityCriteria"))
        return RawEligibility(
            nct_id=nct_id,
            eligibility_criteria=(
                cls.sanitize_eligibility_text(criteria) if criteria else None
            ),
            minimum_age=_text(elig.get("minimumAge")),
            maximum_age=_text(elig.get("maximumAge")),
            sex=_text(elig.get("sex")),
            healthy_volunteers=_text(elig.get("healthyVolunteers")),
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def sanitize_eligibility_text(text: str) -> str:
        """Unescape HTML entities and collapse runs of whitespace, keeping line breaks."""
        text = html.unescape(text).replace("\r\n", "\n").replace("\r", "\n")
        lines = [_HORIZONTAL_WS.sub(" ", line).rstrip() for line in text.split("\n")]
        return _EXTRA_NEWLINES.sub("\n\n", "\n".join(lines)).strip()

    @staticmethod
    def _normalize_phase(phases: list[Any]) -> str | None:
        """Convert v2 phase list like ['PHASE2', 'PHASE3'] → 'Phase 2/Phase 3'."""
        labels = [PHASE_LABELS.get(p, p) for p in phases if isinstance(p, str) and p]
        return "/".join(labels) or None

    @staticmethod
    def _extract_date(date_struct: Any) -> str | None:
        """Extract date string from v2 date struct like {'date': '2021-03-15'}."""
        if not isinstance(date_struct, dict):
            return None
        return _str(date_struct.get("date"))

    @staticmethod
    def _truncate(text: str, limit: int) -> str:
        if len(text) <= limit:
            return text
        return text[:limit] + "..."


def _module(parent: dict[str, Any], name: str) -> dict[str, Any]:
    value = parent.get(name)
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str | None:
    """Non-empty string or None."""
    return value if isinstance(value, str) and value else None


def _text(value: Any) -> str | None:
    """Any scalar as a string; the API mixes bools and strings here."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
