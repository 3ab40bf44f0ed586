"""Unit tests for the LLM helpers."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from clinibridge.services.llm import (
    parse_json_object,
    query_llm,
    query_llm_structured,
    query_llm_with_tools,
)


def _mock_client(content: list) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=content))
    return client


# ── parse_json_object ─────────────────────────────────────────────────────────


def test_parse_json_object_plain():
    assert parse_json_object('{"a": 1}') == {"a": 1}


def test_parse_json_object_with_fences_and_prose():
    response = 'Here it is:\n```json\n{"a": {"b": [1, 2]}}\n```\nHope that helps.'
    assert parse_json_object(response) == {"a": {"b": [1, 2]}}


@pytest.mark.parametrize("response", ["", "no braces here", "} backwards {", "{bad json}"])
def test_parse_json_object_errors(response):
    with pytest.raises(json.JSONDecodeError):
        parse_json_object(response)


# ── query_llm ─────────────────────────────────────────────────────────────────


async def test_query_llm_joins_text_blocks():
    client = _mock_client(
        [
            SimpleNamespace(type="text", text="Hello "),
            SimpleNamespace(type="tool_use", name="x", input={}),
            SimpleNamespace(type="text", text="world"),
        ]
    )

    with patch("clinibridge.services.llm.get_client", return_value=client):
        result = await query_llm(
            [{"role": "user", "content": "hi"}], system="Be brief.", temperature=0.1
        )

    assert result == "Hello world"
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Be brief."
    assert kwargs["temperature"] == 0.1


async def test_query_llm_omits_empty_system():
    client = _mock_client([SimpleNamespace(type="text", text="ok")])

    with patch("clinibridge.services.llm.get_client", return_value=client):
        await query_llm([{"role": "user", "content": "hi"}])

    assert "system" not in client.messages.create.call_args.kwargs


# ── query_llm_structured ──────────────────────────────────────────────────────


async def test_query_llm_structured_returns_tool_input():
    client = _mock_client(
        [SimpleNamespace(type="tool_use", name="record", input={"scores": []})]
    )

    with patch("clinibridge.services.llm.get_client", return_value=client):
        result = await query_llm_structured(
            "prompt",
            tool_name="record",
            tool_description="Record things",
            input_schema={"type": "object"},
        )

    assert result == {"scores": []}
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["tool_choice"] == {"type": "tool", "name": "record"}
    assert kwargs["tools"][0]["input_schema"] == {"type": "object"}


async def test_query_llm_structured_without_tool_call_raises():
    client = _mock_client([SimpleNamespace(type="text", text="I refuse")])

    with patch("clinibridge.services.llm.get_client", return_value=client):
        with pytest.raises(ValueError, match="no 'record' tool call"):
            await query_llm_structured(
                "prompt",
                tool_name="record",
                tool_description="Record things",
                input_schema={"type": "object"},
            )


# ── query_llm_with_tools ──────────────────────────────────────────────────────


async def test_query_llm_with_tools_returns_raw_response():
    content = [SimpleNamespace(type="tool_use", id="t1", name="lookup", input={})]
    client = _mock_client(content)
    tools = [{"name": "lookup", "description": "Look up", "input_schema": {}}]

    with patch("clinibridge.services.llm.get_client", return_value=client):
        response = await query_llm_with_tools(
            [{"role": "user", "content": "hi"}], tools=tools, system="Be brief."
        )

    assert response.content == content
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["tools"] == tools
    assert kwargs["system"] == "Be brief."
    assert "tool_choice" not in kwargs
