"""
Eligibility explainer.

For one (trial, patient) pair:
  1. Get raw eligibility fields, cache-first by NCT ID.
  2. No criteria text → deterministic fallback.
  3. Split the text on its Inclusion/Exclusion headers and build a capped
     context block.
  4. Ask the LLM to rewrite and classify each criterion; on a response that
     fails validation, retry once with a schema-repair message, then fall
     back to the raw text.
  5. Return a breakdown with only the known fields and the required
     disclaimer.

The public entry point never raises.
"""

import json
import logging
import re

from pydantic import ValidationError

from clinibridge.constants import (
    ELIGIBILITY_CONTEXT_MAX_CHARS,
    ELIGIBILITY_CONTEXT_TRIM_TO,
    ELIGIBILITY_SOURCE,
    ELIGIBILITY_TRIM_NOTICE,
    FALLBACK_CHECKLIST,
    REQUIRED_DISCLAIMER,
)
from clinibridge.data_sources.clinical_trials import ClinicalTrialsClient
from clinibridge.models.model_clinical_trials import PatientProfile
from clinibridge.models.model_eligibility import (
    EligibilityBreakdown,
    EligibilityCriterion,
    EligibilityMeta,
    EligibilitySections,
    RawEligibility,
)
from clinibridge.services.eligibility_cache import (
    EligibilityCache,
    MemoryEligibilityCache,
)
from clinibridge.services.llm import parse_json_object, query_llm

logger = logging.getLogger(__name__)

_INCLUSION_HEADER = re.compile(r"^[ \t]*inclusion\s*criteria:?[ \t]*$", re.I | re.M)
_EXCLUSION_HEADER = re.compile(r"^[ \t]*exclusion\s*criteria:?[ \t]*$", re.I | re.M)

NOTE_NO_CRITERIA = "This trial does not list eligibility criteria on ClinicalTrials.gov."
NOTE_LLM_UNAVAILABLE = "Automated breakdown was unavailable. Raw criteria shown instead."
NOTE_FETCH_FAILED = "Eligibility criteria could not be retrieved from ClinicalTrials.gov."
NOTE_LLM_FAILED = "Automated breakdown failed. See the full trial listing for criteria."

ELIGIBILITY_SYSTEM_PROMPT = """You translate clinical trial eligibility criteria into plain English.
You do NOT determine eligibility. You classify each criterion as:
- "met" only if the patient profile explicitly satisfies it.
- "not_met" only if the patient profile explicitly contradicts it.
- "unknown" for anything else.
Be conservative: when unsure, use "unknown".
Use plain English suitable for a 16-year-old.
If you use medical terms, add a short parenthetical explanation.
Return only valid JSON matching the provided schema. No extra text.
Include the disclaimer exactly as provided."""

BREAKDOWN_SCHEMA_HINT = """{
  "trial_id": "NCT...",
  "disclaimer": "...",
  "inclusion_criteria": [{"original": "...", "plain_english": "...", "status": "met | not_met | unknown", "reason": "..."}],
  "exclusion_criteria": [{"original": "...", "plain_english": "...", "status": "met | not_met | unknown", "reason": "..."}],
  "preparation_checklist": ["..."],
  "meta": {"source": "clinicaltrials.gov", "criteria_present": true, "notes": ""}
}"""

REPAIR_ACK = "I'll fix the JSON to match the exact schema required."
REPAIR_PROMPT = (
    "Your previous response did not match the required schema. Return valid JSON "
    "with these exact top-level keys: trial_id, disclaimer, inclusion_criteria, "
    "exclusion_criteria, preparation_checklist, meta. Each criterion must have: "
    'original, plain_english, status ("met" | "not_met" | "unknown"), reason. '
    f"Schema:\n{BREAKDOWN_SCHEMA_HINT}\nReturn JSON only."
)


# ---------------------------------------------------------------------------
# Text handling
# ---------------------------------------------------------------------------


def split_eligibility_sections(raw: str) -> EligibilitySections:
    """Split criteria text on line-anchored Inclusion/Exclusion headers.

    Either order is handled; with no header at all the whole text is
    unclassified.
    """
    text = re.sub(r"\n{3,}", "\n\n", raw.replace("\r\n", "\n")).strip()
    inc = _INCLUSION_HEADER.search(text)
    exc = _EXCLUSION_HEADER.search(text)

    if inc and exc:
        if inc.start() < exc.start():
            return EligibilitySections(
                inclusion=text[inc.end() : exc.start()].strip(),
                exclusion=text[exc.end() :].strip(),
            )
        return EligibilitySections(
            exclusion=text[exc.end() : inc.start()].strip(),
            inclusion=text[inc.end() :].strip(),
        )
    if inc:
        return EligibilitySections(inclusion=text[inc.end() :].strip())
    if exc:
        return EligibilitySections(exclusion=text[exc.end() :].strip())
    return EligibilitySections(unclassified=text)


def build_eligibility_context(raw: RawEligibility) -> str:
    """Sectioned criteria plus age/sex lines, capped for the prompt."""
    sections = split_eligibility_sections(raw.eligibility_criteria or "")
    context = ""
    if sections.inclusion:
        context += f"Inclusion Criteria:\n{sections.inclusion}\n\n"
    if sections.exclusion:
        context += f"Exclusion Criteria:\n{sections.exclusion}\n\n"
    if sections.unclassified:
        context += f"Criteria:\n{sections.unclassified}\n\n"

    if raw.minimum_age:
        context += f"Minimum Age: {raw.minimum_age}\n"
    if raw.maximum_age:
        context += f"Maximum Age: {raw.maximum_age}\n"
    if raw.sex:
        context += f"Sex: {raw.sex}\n"
    if raw.healthy_volunteers:
        context += f"Healthy Volunteers: {raw.healthy_volunteers}\n"

    if len(context) > ELIGIBILITY_CONTEXT_MAX_CHARS:
        context = context[:ELIGIBILITY_CONTEXT_TRIM_TO] + ELIGIBILITY_TRIM_NOTICE
    return context


def build_profile_json(profile: PatientProfile) -> str:
    return json.dumps(
        {
            "age": profile.age,
            "sex": profile.sex or "not specified",
            "location": profile.location or "not specified",
            "condition": profile.condition,
            "medications": profile.medications,
            "additional_info": profile.additional_info,
        },
        indent=2,
    )


def build_user_prompt(nct_id: str, profile_json: str, eligibility_context: str) -> str:
    return f"""Trial ID: {nct_id}

Patient profile:
{profile_json}

Eligibility criteria (raw):
{eligibility_context}

Task:
1) Separate inclusion vs exclusion criteria.
2) For each criterion, provide: original, plain_english, status ("met" | "not_met" | "unknown"), reason.
3) Generate a "preparation_checklist" derived from all "unknown" items.
4) Use the disclaimer exactly:
"{REQUIRED_DISCLAIMER}"

Respond with JSON in this shape:
{BREAKDOWN_SCHEMA_HINT}

Return JSON only."""


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------


def parse_breakdown(content: str) -> EligibilityBreakdown | None:
    """Validate an LLM reply. None if it is not a usable breakdown."""
    if not content.strip():
        return None
    try:
        return EligibilityBreakdown.model_validate(parse_json_object(content))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Eligibility response failed validation: %s", e)
        return None


def build_fallback(
    nct_id: str, raw_criteria: str | None, notes: str = NOTE_LLM_UNAVAILABLE
) -> EligibilityBreakdown:
    """Deterministic breakdown used whenever the automated one is unavailable."""
    inclusion = []
    if raw_criteria:
        inclusion.append(
            EligibilityCriterion(
                original=raw_criteria,
                plain_english=(
                    "We couldn't process these criteria automatically. "
                    "Here's the original text from ClinicalTrials.gov."
                ),
                status="unknown",
                reason="Automatic processing was unavailable.",
            )
        )
    return EligibilityBreakdown(
        trial_id=nct_id,
        disclaimer=REQUIRED_DISCLAIMER,
        inclusion_criteria=inclusion,
        exclusion_criteria=[],
        preparation_checklist=list(FALLBACK_CHECKLIST),
        meta=EligibilityMeta(
            source=ELIGIBILITY_SOURCE,
            criteria_present=bool(raw_criteria),
            notes=notes,
        ),
    )


def finalize_breakdown(nct_id: str, result: EligibilityBreakdown) -> EligibilityBreakdown:
    """Pin the trial ID and exact disclaimer onto a validated model reply."""
    return result.model_copy(
        update={
            "trial_id": result.trial_id or nct_id,
            "disclaimer": REQUIRED_DISCLAIMER,
        }
    )


# ---------------------------------------------------------------------------
# Explainer
# ---------------------------------------------------------------------------


class EligibilityExplainer:
    """Cache-first raw eligibility fetch plus LLM classification."""

    def __init__(
        self,
        client: ClinicalTrialsClient | None = None,
        cache: EligibilityCache | None = None,
    ):
        self.client = client
        self.cache = cache if cache is not None else MemoryEligibilityCache()

    async def get_raw(self, nct_id: str) -> RawEligibility:
        """Raw eligibility fields, from the cache when present."""
        cached = self.cache.get(nct_id)
        if cached is not None:
            logger.debug("Eligibility cache hit for %s", nct_id)
            return cached

        if self.client is not None:
            raw = await self.client.get_eligibility(nct_id)
        else:
            async with ClinicalTrialsClient() as client:
                raw = await client.get_eligibility(nct_id)

        self.cache.set(raw)
        return raw

    async def classify(
        self, nct_id: str, profile: PatientProfile, eligibility_context: str
    ) -> EligibilityBreakdown | None:
        """One attempt, then one schema-repair retry. None if both fail validation."""
        messages = [
            {
                "role": "user",
                "content": build_user_prompt(
                    nct_id, build_profile_json(profile), eligibility_context
                ),
            }
        ]
        content = await query_llm(
            messages, system=ELIGIBILITY_SYSTEM_PROMPT, temperature=0
        )
        result = parse_breakdown(content)
        if result is not None:
            return result

        logger.info("Retrying eligibility breakdown for %s with repair prompt", nct_id)
        retry_messages = messages + [
            {"role": "assistant", "content": REPAIR_ACK},
            {"role": "user", "content": REPAIR_PROMPT},
        ]
        content = await query_llm(
            retry_messages, system=ELIGIBILITY_SYSTEM_PROMPT, temperature=0.1
        )
        return parse_breakdown(content)

    async def get_breakdown(
        self, nct_id: str, profile: PatientProfile
    ) -> EligibilityBreakdown:
        """Explain `nct_id`'s criteria against `profile`. Never raises."""
        try:
            raw = await self.get_raw(nct_id)
        except Exception as e:  # noqa: BLE001
            logger.error("Could not fetch eligibility for %s: %s", nct_id, e)
            return build_fallback(nct_id, None, notes=NOTE_FETCH_FAILED)

        if not raw.eligibility_criteria:
            return build_fallback(nct_id, None, notes=NOTE_NO_CRITERIA)

        try:
            result = await self.classify(
                nct_id, profile, build_eligibility_context(raw)
            )
        except Exception as e:  # noqa: BLE001
            logger.error("Eligibility LLM call failed for %s: %s", nct_id, e)
            return build_fallback(nct_id, None, notes=NOTE_LLM_FAILED)

        if result is None:
            return build_fallback(nct_id, raw.eligibility_criteria)

        logger.info(
            "Eligibility breakdown for %s: inclusion=%d exclusion=%d checklist=%d",
            nct_id,
            len(result.inclusion_criteria),
            len(result.exclusion_criteria),
            len(result.preparation_checklist),
        )
        return finalize_breakdown(nct_id, result)
