import json

import pytest

from model_eval.bench.types import GenericTool, RawProviderTool
from model_eval.providers.base import format_tools, normalize_finish_reason
from model_eval.providers.factory import build_provider_registry, requires_api_key, resolve_api_key
from model_eval.providers.mock import MockProviderAdapter


WEATHER = GenericTool(name="get_weather", description="Weather lookup", parameters={"type": "object"})
NATIVE = RawProviderTool(spec={"type": "function", "function": {"name": "native"}})


def test_format_tools_openai_and_anthropic():
    assert format_tools([WEATHER]) == [{
        "type": "function",
        "function": {"name": "get_weather", "description": "Weather lookup", "parameters": {"type": "object"}},
    }]
    assert format_tools([WEATHER], "anthropic") == [
        {"name": "get_weather", "description": "Weather lookup", "input_schema": {"type": "object"}}
    ]
    # Native tools pass through whatever the target format
    assert format_tools([NATIVE], "anthropic") == [NATIVE.spec]
    # Unknown formats fall back to OpenAI
    assert format_tools([WEATHER], "bogus") == format_tools([WEATHER], "openai")


@pytest.mark.parametrize("raw, expected", [
    (None, "stop"),
    ("end_turn", "stop"),
    ("MAX_TOKENS", "length"),
    ("safety", "content_filter"),
    ("tool_use", "tool_calls"),
    ("function_call", "tool_calls"),
    ("incomplete", "incomplete"),
    ("something-new", "stop"),
])
def test_normalize_finish_reason(raw, expected):
    assert normalize_finish_reason(raw) == expected


def test_validate_params():
    mock = MockProviderAdapter()
    ok = mock.validate_params("chat.completions", {"messages": [{"role": "user", "content": "x"}]})
    assert ok == {"valid": True}

    bad = mock.validate_params("chat.completions", {"messages": [], "max_tokens": 0, "temperature": 5})
    assert bad["valid"] is False
    assert len(bad["errors"]) == 3

    unsupported = mock.validate_params("images.generate", {})
    assert unsupported["errors"] == ["Unsupported operation: images.generate"]


@pytest.mark.asyncio
async def test_mock_execute_echoes_and_calls_first_tool():
    mock = MockProviderAdapter()
    resp = await mock.execute({
        "model": "mock-1",
        "params": {
            "messages": [{"role": "system", "content": "be brief"}, {"role": "user", "content": "so i think  "}],
            "tools": format_tools([WEATHER]),
        },
    })
    assert resp["content"] == "so I think"
    assert resp["finishReason"] == "tool_calls"
    call = resp["toolCalls"][0]
    assert call["function"]["name"] == "get_weather"
    assert json.loads(call["function"]["arguments"]) == {}
    usage = resp["usage"]
    assert usage["totalTokens"] == usage["promptTokens"] + usage["completionTokens"]
    assert resp["metadata"] == {"provider": "mock", "model": "mock-1"}


@pytest.mark.asyncio
async def test_mock_embed_is_deterministic():
    mock = MockProviderAdapter()
    a = await mock.embed({"model": "e", "params": {"input": ["alpha", "beta"]}})
    b = await mock.embed({"model": "e", "params": {"input": "alpha"}})
    assert len(a["embeddings"]) == 2
    assert len(a["embeddings"][0]) == 16
    assert a["embeddings"][0] == b["embeddings"][0]
    assert all(0.0 <= v <= 1.0 for v in a["embeddings"][1])


@pytest.mark.asyncio
async def test_base_adapter_embed_not_supported():
    from model_eval.providers.base import ProviderAdapter

    class ChatOnly(ProviderAdapter):
        name = "chat-only"

        async def execute(self, request):
            return {"content": ""}

    with pytest.raises(NotImplementedError):
        await ChatOnly().embed({})


def test_registry_aliases_and_case_insensitive_lookup():
    registry = build_provider_registry()
    assert registry.names() == ["mock", "test"]
    assert registry.get("MOCK") is registry.get("test")
    assert "Mock" in registry
    assert registry.get("openai") is None
    assert 42 not in registry


def test_resolve_api_key_precedence(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "from-env")
    assert resolve_api_key("openai", "  from-header ") == "from-header"
    assert resolve_api_key("openai") == "from-env"
    monkeypatch.delenv("OPENAI_API_KEY")
    assert resolve_api_key("openai") == ""
    # Keyless providers never resolve a key
    monkeypatch.setenv("OPENAI_API_KEY", "x")
    assert resolve_api_key("mock", "header") == ""
    assert resolve_api_key("unlisted-provider") == ""


def test_requires_api_key():
    assert requires_api_key("openai") is True
    assert requires_api_key("Mock") is False
    assert requires_api_key("test") is False
