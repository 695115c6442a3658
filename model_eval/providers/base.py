from __future__ import annotations

import abc
from typing import Any, Callable, Dict, List, Optional, Sequence, TypedDict

from model_eval.bench.types import GenericTool, RawProviderTool, Tool


class Usage(TypedDict):
    promptTokens: int
    completionTokens: int
    totalTokens: int


class ToolCallFunction(TypedDict):
    name: str
    # JSON-encoded argument object, as providers return it
    arguments: str


class ToolCall(TypedDict, total=False):
    id: str
    type: str
    function: ToolCallFunction


class ProviderResponse(TypedDict, total=False):
    content: str
    toolCalls: List[ToolCall]
    usage: Usage
    finishReason: str
    metadata: Dict[str, Any]


class EmbeddingResponse(TypedDict, total=False):
    embeddings: List[List[float]]
    usage: Usage
    metadata: Dict[str, Any]


class ExecuteRequest(TypedDict, total=False):
    operation: str
    model: str
    params: Dict[str, Any]
    apiKey: str
    timeout: int


class ValidationResult(TypedDict, total=False):
    valid: bool
    errors: List[str]


# ---------------------------------------------------------------------------
# Tool formats
# ---------------------------------------------------------------------------


def to_openai_tool(tool: Tool) -> Dict[str, Any]:
    if isinstance(tool, RawProviderTool):
        return dict(tool.spec)
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def to_anthropic_tool(tool: Tool) -> Dict[str, Any]:
    if isinstance(tool, RawProviderTool):
        return dict(tool.spec)
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.parameters,
    }


TOOL_FORMATTERS: Dict[str, Callable[[Tool], Dict[str, Any]]] = {
    "openai": to_openai_tool,
    "anthropic": to_anthropic_tool,
}


def format_tools(tools: Sequence[Tool], tool_format: str = "openai") -> List[Dict[str, Any]]:
    formatter = TOOL_FORMATTERS.get(tool_format, to_openai_tool)
    return [formatter(t) for t in tools]


def normalize_finish_reason(raw: Optional[str]) -> str:
    """Map provider finish reasons onto stop/length/content_filter/tool_calls/incomplete."""
    if not raw:
        return "stop"
    r = raw.lower()
    if r in ("stop", "end_turn"):
        return "stop"
    if r in ("length", "max_tokens"):
        return "length"
    if r in ("content_filter", "safety"):
        return "content_filter"
    if r in ("tool_calls", "function_call", "tool_use"):
        return "tool_calls"
    if r == "incomplete":
        return "incomplete"
    if r == "error":
        return "error"
    return "stop"


def estimate_tokens(text: str) -> int:
    # ~1 token per 4 chars as a crude approximation
    return max(1, int(len(text or "") / 4))


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------


class ProviderAdapter(abc.ABC):
    """Black-box interface to a model-serving backend.

    ``execute`` may raise or never return; the runner bounds it with a timeout
    and retries non-timeout failures.
    """

    name: str = "unknown"
    supported_operations: Sequence[str] = ("chat.completions",)
    tool_format: str = "openai"

    @abc.abstractmethod
    async def execute(self, request: ExecuteRequest) -> ProviderResponse:
        ...

    async def embed(self, request: ExecuteRequest) -> EmbeddingResponse:
        raise NotImplementedError(f"{self.name} does not support embeddings")

    def validate_params(self, operation: str, params: Dict[str, Any]) -> ValidationResult:
        errors: List[str] = []
        if operation not in self.supported_operations:
            errors.append(f"Unsupported operation: {operation}")
        if operation == "chat.completions":
            messages = params.get("messages")
            if not isinstance(messages, list) or not messages:
                errors.append("messages must be a non-empty list")
            max_tokens = params.get("max_tokens")
            if max_tokens is not None and (not isinstance(max_tokens, int) or max_tokens <= 0):
                errors.append("max_tokens must be a positive integer")
            temperature = params.get("temperature")
            if temperature is not None and not (0 <= temperature <= 2):
                errors.append("temperature must be within [0, 2]")
        if errors:
            return {"valid": False, "errors": errors}
        return {"valid": True}

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)


class ProviderRegistry:
    def __init__(self) -> None:
        self._adapters: Dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter, name: Optional[str] = None) -> None:
        self._adapters[(name or adapter.name).lower()] = adapter

    def get(self, name: str) -> Optional[ProviderAdapter]:
        return self._adapters.get((name or "").lower())

    def names(self) -> List[str]:
        return sorted(self._adapters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._adapters
