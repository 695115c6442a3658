import asyncio
import hashlib
import json
from typing import Any, Dict, List, Optional

from .base import EmbeddingResponse, ExecuteRequest, ProviderAdapter, ProviderResponse, estimate_tokens


class MockProviderAdapter(ProviderAdapter):
    """Deterministic offline provider for exercising the pipeline end to end.

    Behaviors:
    - Echoes the last user message, with a couple of obvious fixes
    - When tools are offered, calls the first one with empty arguments
    - Embeddings are derived from a SHA-256 of the input text
    """

    name = "mock"
    supported_operations = ("chat.completions", "embeddings")

    def __init__(self, delay_seconds: float = 0.0):
        self._delay = delay_seconds

    async def execute(self, request: ExecuteRequest) -> ProviderResponse:
        if self._delay:
            await asyncio.sleep(self._delay)
        params: Dict[str, Any] = request.get("params") or {}
        messages: List[Dict[str, Any]] = params.get("messages") or []
        user_texts = [m.get("content", "") for m in messages if m.get("role") == "user"]
        out = (user_texts[-1] if user_texts else "").strip()
        out = out.replace(" i ", " I ").replace(" i'", " I'")

        tools = params.get("tools") or []
        tool_calls = []
        if tools:
            first = tools[0]
            fn_name = (first.get("function") or {}).get("name") or first.get("name") or "unknown"
            tool_calls.append({
                "id": "call_" + hashlib.sha256(out.encode("utf-8")).hexdigest()[:12],
                "type": "function",
                "function": {"name": fn_name, "arguments": json.dumps({})},
            })

        text_in = "\n".join(str(m.get("content", "")) for m in messages)
        prompt_tokens = estimate_tokens(text_in)
        completion_tokens = estimate_tokens(out)
        response: ProviderResponse = {
            "content": out,
            "usage": {
                "promptTokens": prompt_tokens,
                "completionTokens": completion_tokens,
                "totalTokens": prompt_tokens + completion_tokens,
            },
            "finishReason": "tool_calls" if tool_calls else "stop",
            "metadata": {"provider": self.name, "model": request.get("model")},
        }
        if tool_calls:
            response["toolCalls"] = tool_calls
        return response

    async def embed(self, request: ExecuteRequest) -> EmbeddingResponse:
        params: Dict[str, Any] = request.get("params") or {}
        raw_input: Optional[Any] = params.get("input")
        texts = raw_input if isinstance(raw_input, list) else [raw_input or ""]
        vectors = [_hash_vector(str(t)) for t in texts]
        tokens = sum(estimate_tokens(str(t)) for t in texts)
        return {
            "embeddings": vectors,
            "usage": {"promptTokens": tokens, "completionTokens": 0, "totalTokens": tokens},
            "metadata": {"provider": self.name, "model": request.get("model")},
        }


def _hash_vector(text: str, dims: int = 16) -> List[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [round(b / 255.0, 6) for b in digest[:dims]]
