"""Generic LLM call helpers."""

import json
import logging
from functools import lru_cache
from typing import Any

from anthropic import AsyncAnthropic
from anthropic.types import Message
from dotenv import load_dotenv

from clinibridge.config import get_settings

load_dotenv()

logger = logging.getLogger(__name__)


@lru_cache
def get_client() -> AsyncAnthropic:
    """Lazily build the shared Anthropic client."""
    return AsyncAnthropic(api_key=get_settings().anthropic_api_key or None)


def parse_json_object(response: str) -> dict[str, Any]:
    """Extract the outermost JSON object from a model response.

    Tolerates prose or ``` fences around the object. Raises
    json.JSONDecodeError if no object can be decoded.
    """
    start = response.find("{")
    end = response.rfind("}")
    if start == -1 or end < start:
        raise json.JSONDecodeError("No JSON object found", response, 0)
    parsed = json.loads(response[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("Top-level JSON is not an object", response, start)
    return parsed


async def query_llm(
    messages: list[dict[str, str]],
    system: str = "",
    temperature: float = 0.0,
) -> str:
    """Send a conversation and return the concatenated text reply."""
    settings = get_settings()
    kwargs: dict[str, Any] = {}
    if system:
        kwargs["system"] = system
    response = await get_client().messages.create(
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        temperature=temperature,
        messages=messages,
        **kwargs,
    )
    return "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )


async def query_llm_structured(
    prompt: str,
    *,
    tool_name: str,
    tool_description: str,
    input_schema: dict[str, Any],
    system: str = "",
    temperature: float = 0.0,
) -> dict[str, Any]:
    """Force a single tool call whose input follows `input_schema`, and return that input."""
    settings = get_settings()
    kwargs: dict[str, Any] = {}
    if system:
        kwargs["system"] = system
    response = await get_client().messages.create(
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        temperature=temperature,
        tools=[
            {
                "name": tool_name,
                "description": tool_description,
                "input_schema": input_schema,
            }
        ],
        tool_choice={"type": "tool", "name": tool_name},
        messages=[{"role": "user", "content": prompt}],
        **kwargs,
    )
    for block in response.content:
        if getattr(block, "type", "") == "tool_use" and block.name == tool_name:
            return dict(block.input)
    raise ValueError(f"Model returned no '{tool_name}' tool call")


async def query_llm_with_tools(
    messages: list[dict[str, Any]],
    *,
    tools: list[dict[str, Any]],
    system: str = "",
    temperature: float = 0.0,
) -> Message:
    """Send a conversation with `tools` on offer and return the raw response.

    The model decides whether to call a tool; the caller runs any tool_use
    blocks and sends the results back.
    """
    settings = get_settings()
    kwargs: dict[str, Any] = {}
    if system:
        kwargs["system"] = system
    return await get_client().messages.create(
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        temperature=temperature,
        tools=tools,
        messages=messages,
        **kwargs,
    )
