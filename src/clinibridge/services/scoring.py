"""
Trial scorer.

Sends the patient profile plus a compact projection of each trial to the
LLM, validates the structured reply, and merges scores back by NCT ID.
Trials the model skipped stay unscored. If the call or validation fails,
the input list is returned untouched; there is no retry.
"""

import json
import logging

from pydantic import ValidationError

from clinibridge.models.model_clinical_trials import (
    MATCH_LABELS,
    PatientProfile,
    TrialSummary,
)
from clinibridge.models.model_scoring import ScoringResponse
from clinibridge.services.llm import query_llm_structured

logger = logging.getLogger(__name__)

SCORING_TOOL_NAME = "record_trial_scores"

SCORING_PROMPT = """You are a clinical trial eligibility analyst. You will receive a patient profile and a list of clinical trials. For each trial, determine how well the patient matches.

SCORING RULES:
1. AGE: Use age_min_years / age_max_years when present, otherwise parse age_range ("2 Years - 11 Years" means 2 to 11, "18 Years+" means 18 and older, "Up to 65 Years" means 0 to 65). If the patient's age is outside the range, the trial is "Unlikely" with no exceptions.
2. CONDITION: Check whether the patient's condition matches the trial's conditions, allowing for synonyms (e.g. "sickle cell disease" = "SCD").
3. ELIGIBILITY CRITERIA: Read eligibility_full. Look for exclusions that apply to the patient (prior treatments, excluded medications, sex restrictions).
4. MEDICATIONS: Cross-check the patient's medications against exclusion criteria. Inclusion language such as "failed prior X" or "intolerant of X" can be a positive signal when the patient takes X.

LABELS:
- "Strong Match" (score 80-100): age fits, condition matches, no disqualifiers found.
- "Possible Match" (score 50-79): age fits, condition matches, some criteria cannot be confirmed.
- "Worth Exploring" (score 30-49): related condition, age fits, significant uncertainty.
- "Unlikely" (score 0-29): age outside range or a clear disqualifier.

MATCH REASON: one short plain-English sentence a parent or caregiver would understand, naming the specific reason.

Return a score for EVERY trial provided, using its nct_id. Do not skip any."""

SCORING_INPUT_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "scores": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "nct_id": {"type": "string"},
                    "match_label": {"type": "string", "enum": list(MATCH_LABELS)},
                    "match_score": {"type": "number", "minimum": 0, "maximum": 100},
                    "match_reason": {"type": "string"},
                },
                "required": ["nct_id", "match_label", "match_score", "match_reason"],
            },
        }
    },
    "required": ["scores"],
}


def build_scoring_input(trials: list[TrialSummary]) -> list[dict]:
    """The subset of each trial the model needs."""
    return [
        {
            "nct_id": t.nct_id,
            "title": t.title,
            "age_range": t.age_range,
            "age_min_years": t.age_min_years,
            "age_max_years": t.age_max_years,
            "conditions": t.conditions,
            "eligibility_full": t.eligibility_full or t.eligibility,
            "interventions": t.interventions,
            "phase": t.phase,
        }
        for t in trials
    ]


def build_scoring_prompt(trials: list[TrialSummary], profile: PatientProfile) -> str:
    return (
        f"Patient profile:\n{profile.model_dump_json(indent=2)}\n\n"
        f"Trials to score:\n{json.dumps(build_scoring_input(trials), indent=2)}"
    )


def merge_scores(
    trials: list[TrialSummary], response: ScoringResponse
) -> list[TrialSummary]:
    """Copy score/label/reason onto matching trials, preserving order and length."""
    by_id = {s.nct_id: s for s in response.scores}
    merged: list[TrialSummary] = []
    for trial in trials:
        score = by_id.get(trial.nct_id)
        if score is None:
            merged.append(trial)
            continue
        merged.append(
            trial.model_copy(
                update={
                    "match_score": round(score.match_score),
                    "match_label": score.match_label,
                    "match_reason": score.match_reason,
                }
            )
        )
    return merged


async def score_trials(
    trials: list[TrialSummary], profile: PatientProfile
) -> list[TrialSummary]:
    """Score `trials` against `profile`. Never raises."""
    if not trials:
        return trials

    try:
        raw = await query_llm_structured(
            build_scoring_prompt(trials, profile),
            tool_name=SCORING_TOOL_NAME,
            tool_description="Record one match score for every trial provided.",
            input_schema=SCORING_INPUT_SCHEMA,
            system=SCORING_PROMPT,
            temperature=0,
        )
        response = ScoringResponse.model_validate(raw)
    except ValidationError as e:
        logger.warning("Scoring response failed validation: %s", e)
        return trials
    except Exception as e:  # noqa: BLE001
        logger.warning("Trial scoring failed, returning unscored trials: %s", e)
        return trials

    scored = merge_scores(trials, response)
    logger.info(
        "Scored %d/%d trials",
        sum(1 for t in scored if t.match_label is not None),
        len(trials),
    )
    return scored
