"""
Chat-mode trial search.

The assistant asks for the patient's condition, age and location one
question at a time, then calls the `search_trials` tool. The tool runs the
same search and scoring as form mode and hands the scored trials back to
the model, which writes a short conversational summary. The trials
themselves are returned to the caller alongside the reply so the UI can
show them as cards.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from clinibridge.models.model_chat import ChatMessage, ChatResult, SearchToolInput
from clinibridge.models.model_clinical_trials import PatientProfile, TrialSummary
from clinibridge.services.llm import query_llm_with_tools
from clinibridge.services.scoring import score_trials
from clinibridge.services.trial_search import search_trials

logger = logging.getLogger(__name__)

MAX_CHAT_STEPS = 3
CHAT_TEMPERATURE = 0.3

MSG_CHAT_UNAVAILABLE = (
    "The assistant is unavailable right now. Please try again shortly."
)

SEARCH_TOOL_NAME = "search_trials"

SEARCH_TOOL_DESCRIPTION = (
    "Search ClinicalTrials.gov for recruiting clinical trials matching the "
    "patient's condition, age, and location. Returns up to 10 scored trial "
    "summaries with match labels, match reasons, age ranges and locations."
)

SEARCH_TOOL_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "condition": {
            "type": "string",
            "description": "The patient's condition, in plain words",
        },
        "age": {"type": "number", "description": "Patient age in years"},
        "location": {
            "type": "string",
            "description": "City, state or country; 'anywhere' for no preference",
        },
        "synonyms": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Medical synonyms or abbreviations for the condition",
        },
        "medications": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Medications the patient currently takes",
        },
        "additional_info": {
            "type": "string",
            "description": "Anything else the patient shared that may matter",
        },
    },
    "required": ["condition", "age", "location"],
}

CHAT_SYSTEM_PROMPT = f"""You are CliniBridge, a warm and knowledgeable clinical trial finder helping rare disease patients and caregivers.

GATHERING DETAILS:
- Ask friendly questions ONE AT A TIME to learn the condition, the patient's age, their location and current medications.
- Use plain language. Be warm and patient. No jargon.
- Think of medical synonyms for the condition to broaden the search.
- As soon as you have condition, age and location, call the {SEARCH_TOOL_NAME} tool. Do not delay.

AFTER THE TOOL RETURNS:
The trials come back already scored, each with a match_label and match_reason.
1. Ignore every trial labelled "Unlikely".
2. Put Strong Matches first, then Possible Matches, then Worth Exploring.
3. Mention at most 4 trials.

REPLY FORMAT (short and conversational):
- One sentence summarising what you found.
- For each trial you mention, ONE short sentence on why it may fit, using details from the patient's profile.
- No markdown headers, numbered lists or heavy formatting.
- End with one sentence saying only the research team can confirm eligibility.

RULES:
- NEVER repeat trial titles, NCT IDs, full summaries or location lists. The trial cards show those.
- NEVER give medical advice, diagnoses or treatment recommendations.
- If nothing fits, say so kindly and suggest broadening the location, checking back later, or asking their doctor about specialist centres.
- If the tool returns an error, explain it briefly and offer to try again.
- If the condition is vague, ask a clarifying question. Never guess a diagnosis."""

SEARCH_TOOL: dict = {
    "name": SEARCH_TOOL_NAME,
    "description": SEARCH_TOOL_DESCRIPTION,
    "input_schema": SEARCH_TOOL_SCHEMA,
}

_TRIAL_FIELDS_FOR_MODEL = {
    "nct_id",
    "conditions",
    "age_range",
    "locations",
    "match_score",
    "match_label",
    "match_reason",
}


async def run_search_tool(
    tool_input: SearchToolInput,
) -> tuple[PatientProfile, list[TrialSummary], str | None]:
    """Search and score for the profile the model gathered. Never raises."""
    profile = tool_input.to_profile()
    result = await search_trials(
        tool_input.condition, tool_input.synonyms, tool_input.location
    )
    if result.error is not None:
        return profile, [], result.error
    return profile, await score_trials(result.trials, profile), None


def build_tool_payload(
    profile: PatientProfile, trials: list[TrialSummary], error: str | None
) -> dict[str, Any]:
    """What the model sees as the tool result."""
    if error is not None:
        return {"error": error, "trials": []}
    return {
        "trials": [
            t.model_dump(mode="json", include=_TRIAL_FIELDS_FOR_MODEL) for t in trials
        ],
        "count": len(trials),
        "patient_profile": profile.model_dump(mode="json"),
    }


def content_block_to_dict(block: Any) -> dict[str, Any]:
    """Echo a response content block back as a request content block."""
    if block.type == "tool_use":
        return {
            "type": "tool_use",
            "id": block.id,
            "name": block.name,
            "input": dict(block.input),
        }
    return {"type": "text", "text": block.text}


async def _handle_tool_call(block: Any, outcome: ChatResult) -> dict[str, Any]:
    if block.name != SEARCH_TOOL_NAME:
        return {
            "type": "tool_result",
            "tool_use_id": block.id,
            "content": f"Unknown tool: {block.name}",
            "is_error": True,
        }
    try:
        tool_input = SearchToolInput.model_validate(block.input)
    except ValidationError as e:
        logger.warning("Invalid search tool input: %s", e)
        return {
            "type": "tool_result",
            "tool_use_id": block.id,
            "content": f"Invalid arguments: {e}",
            "is_error": True,
        }

    profile, trials, error = await run_search_tool(tool_input)
    outcome.profile = profile
    outcome.trials = trials
    outcome.error = error
    logger.info(
        "Chat search for %r returned %d trials (error=%s)",
        tool_input.condition,
        len(trials),
        error,
    )
    return {
        "type": "tool_result",
        "tool_use_id": block.id,
        "content": json.dumps(build_tool_payload(profile, trials, error)),
    }


async def chat(
    messages: list[ChatMessage], *, max_steps: int = MAX_CHAT_STEPS
) -> ChatResult:
    """Run one assistant turn, calling the search tool as often as the model asks.

    Stops after `max_steps` model calls. Never raises: an LLM failure comes
    back as `error`, keeping any trials a search already produced.
    """
    conversation: list[dict[str, Any]] = [m.model_dump() for m in messages]
    outcome = ChatResult()

    for _ in range(max_steps):
        try:
            response = await query_llm_with_tools(
                conversation,
                tools=[SEARCH_TOOL],
                system=CHAT_SYSTEM_PROMPT,
                temperature=CHAT_TEMPERATURE,
            )
        except Exception as e:  # noqa: BLE001
            logger.error("Chat LLM call failed: %s", e)
            outcome.error = outcome.error or MSG_CHAT_UNAVAILABLE
            return outcome

        outcome.reply = "".join(
            b.text for b in response.content if getattr(b, "type", "") == "text"
        )
        tool_calls = [
            b for b in response.content if getattr(b, "type", "") == "tool_use"
        ]
        if not tool_calls:
            break

        conversation.append(
            {
                "role": "assistant",
                "content": [content_block_to_dict(b) for b in response.content],
            }
        )
        conversation.append(
            {
                "role": "user",
                "content": [await _handle_tool_call(b, outcome) for b in tool_calls],
            }
        )

    return outcome
