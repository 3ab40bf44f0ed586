"""Structured-output schema for the trial scorer."""

from typing import Annotated

from pydantic import BaseModel, Field

from clinibridge.models.model_clinical_trials import MatchLabel


class TrialScore(BaseModel):
    """The model's verdict on one trial."""

    nct_id: str = Field(description="NCT ID of the trial being scored")
    match_label: MatchLabel
    match_score: Annotated[
        float, Field(ge=0, le=100, description="0-100 confidence score")
    ]
    match_reason: str = Field(
        description="One plain-English sentence explaining the match or mismatch"
    )


class ScoringResponse(BaseModel):
    """One score per trial sent to the model."""

    scores: list[TrialScore]
