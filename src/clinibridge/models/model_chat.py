"""
Pydantic models for chat-mode search.

The assistant gathers the patient profile in conversation, then calls the
search tool with a SearchToolInput. ChatResult carries the reply plus the
trials from the last search the tool ran, if any.
"""

from typing import Literal

from pydantic import BaseModel, Field

from clinibridge.models.model_clinical_trials import PatientProfile, TrialSummary


class ChatMessage(BaseModel):
    """One plain-text turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class SearchToolInput(BaseModel):
    """Arguments the model passes to the trial search tool."""

    condition: str = Field(min_length=1)
    age: float = Field(ge=0)
    location: str
    synonyms: list[str] = []
    medications: list[str] = []
    additional_info: str = ""

    def to_profile(self) -> PatientProfile:
        return PatientProfile(
            condition=self.condition,
            age=self.age,
            location=self.location,
            medications=self.medications,
            additional_info=self.additional_info,
        )


class ChatResult(BaseModel):
    reply: str = ""
    trials: list[TrialSummary] = []
    error: str | None = None
    profile: PatientProfile | None = None  # set once a search has run

    @property
    def searched(self) -> bool:
        return self.profile is not None
