"""Data model for benchmarks, test cases, and evaluation runs.

Domain objects are frozen dataclasses with snake_case attributes. The JSON
surface (benchmark files, HTTP payloads, persisted results) uses camelCase;
``from_dict`` parses it and ``to_dict`` renders it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

TaskType = Literal[
    "routing",
    "conversational",
    "code",
    "reasoning",
    "function_calling",
    "embedding",
]
TASK_TYPES: Tuple[str, ...] = (
    "routing",
    "conversational",
    "code",
    "reasoning",
    "function_calling",
    "embedding",
)

# Built-in evaluator names. Test cases may name others; those score as unknown.
EVALUATOR_TYPES: Tuple[str, ...] = (
    "exact",
    "contains",
    "semantic",
    "json_schema",
    "function_call",
    "regex",
    "custom",
)

EvalStatus = Literal["pending", "running", "completed", "failed"]
EVAL_STATUSES: Tuple[str, ...] = ("pending", "running", "completed", "failed")

Scope = Literal["global", "org"]
SCOPES: Tuple[str, ...] = ("global", "org")

Role = Literal["system", "user", "assistant"]
ROLES: Tuple[str, ...] = ("system", "user", "assistant")


class DatasetError(ValueError):
    """Raised when a benchmark definition cannot be parsed."""


def _require(obj: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(obj, dict):
        raise DatasetError(f"{where}: expected an object, got {type(obj).__name__}")
    if key not in obj or obj[key] is None:
        raise DatasetError(f"{where}: missing required field '{key}'")
    return obj[key]


def _str_list(value: Any, where: str) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise DatasetError(f"{where}: expected a list of strings")
    return tuple(value)


def _positive_int(value: Any, key: str, where: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise DatasetError(f"{where}: {key} must be a positive integer")
    return value


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


# ---------------------------------------------------------------------------
# Test case definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "Message":
        role = _require(obj, "role", "message")
        if role not in ROLES:
            raise DatasetError(f"message: unknown role '{role}'")
        content = obj.get("content") or ""
        return cls(role=role, content=str(content))

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class GenericTool:
    """Provider-neutral tool definition."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass(frozen=True)
class RawProviderTool:
    """Tool already expressed in a provider's native schema; passed through untouched."""

    spec: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.spec)


Tool = Union[GenericTool, RawProviderTool]


def parse_tool(obj: Dict[str, Any]) -> Tool:
    if not isinstance(obj, dict):
        raise DatasetError("tool: expected an object")
    # OpenAI-style {"type": "function", "function": {...}} is already native
    if obj.get("type") == "function":
        return RawProviderTool(spec=dict(obj))
    name = _require(obj, "name", "tool")
    params = obj.get("parameters") or {}
    if not isinstance(params, dict):
        raise DatasetError(f"tool '{name}': parameters must be an object")
    return GenericTool(name=str(name), description=str(obj.get("description") or ""), parameters=params)


@dataclass(frozen=True)
class TestCaseInput:
    __test__ = False

    messages: Tuple[Message, ...] = ()
    prompt: Optional[str] = None
    tools: Tuple[Tool, ...] = ()

    @classmethod
    def from_dict(cls, obj: Optional[Dict[str, Any]]) -> "TestCaseInput":
        obj = obj or {}
        messages = tuple(Message.from_dict(m) for m in (obj.get("messages") or []))
        tools = tuple(parse_tool(t) for t in (obj.get("tools") or []))
        prompt = obj.get("prompt")
        return cls(messages=messages, prompt=str(prompt) if prompt is not None else None, tools=tools)

    def chat_messages(self) -> List[Dict[str, Any]]:
        """Messages sent to the provider: the scripted turns, then the raw prompt as a user turn."""
        out = [m.to_dict() for m in self.messages]
        if self.prompt:
            out.append({"role": "user", "content": self.prompt})
        return out

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"messages": [m.to_dict() for m in self.messages]}
        if self.prompt is not None:
            out["prompt"] = self.prompt
        if self.tools:
            out["tools"] = [t.to_dict() for t in self.tools]
        return out


@dataclass(frozen=True)
class ExpectedFunctionCall:
    name: str
    arguments: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.arguments is not None:
            out["arguments"] = self.arguments
        return out


@dataclass(frozen=True)
class Expected:
    content: Optional[str] = None
    contains: Optional[Tuple[str, ...]] = None
    not_contains: Optional[Tuple[str, ...]] = None
    pattern: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None
    function_call: Optional[ExpectedFunctionCall] = None

    @classmethod
    def from_dict(cls, obj: Optional[Dict[str, Any]]) -> "Expected":
        obj = obj or {}
        fc = obj.get("functionCall")
        function_call = None
        if fc is not None:
            args = fc.get("arguments") if isinstance(fc, dict) else None
            if args is not None and not isinstance(args, dict):
                raise DatasetError("expected.functionCall.arguments must be an object")
            function_call = ExpectedFunctionCall(name=str(_require(fc, "name", "expected.functionCall")), arguments=args)
        schema = obj.get("schema")
        if schema is not None and not isinstance(schema, dict):
            raise DatasetError("expected.schema must be an object")
        content = obj.get("content")
        pattern = obj.get("pattern")
        return cls(
            content=str(content) if content is not None else None,
            contains=_str_list(obj.get("contains"), "expected.contains"),
            not_contains=_str_list(obj.get("notContains"), "expected.notContains"),
            pattern=str(pattern) if pattern is not None else None,
            schema=schema,
            function_call=function_call,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.content is not None:
            out["content"] = self.content
        if self.contains is not None:
            out["contains"] = list(self.contains)
        if self.not_contains is not None:
            out["notContains"] = list(self.not_contains)
        if self.pattern is not None:
            out["pattern"] = self.pattern
        if self.schema is not None:
            out["schema"] = self.schema
        if self.function_call is not None:
            out["functionCall"] = self.function_call.to_dict()
        return out


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    id: str
    name: str
    input: TestCaseInput
    expected: Expected
    evaluator: str
    weight: float = 1.0
    tags: Tuple[str, ...] = ()
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "TestCase":
        tc_id = str(_require(obj, "id", "testCase"))
        where = f"testCase '{tc_id}'"
        evaluator = _require(obj, "evaluator", where)
        if not isinstance(evaluator, str) or not evaluator:
            raise DatasetError(f"{where}: evaluator must be a non-empty string")
        weight = obj.get("weight", 1)
        if weight is None:
            weight = 1
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
            raise DatasetError(f"{where}: weight must be a positive number")
        return cls(
            id=tc_id,
            name=str(obj.get("name") or tc_id),
            description=obj.get("description"),
            input=TestCaseInput.from_dict(obj.get("input")),
            expected=Expected.from_dict(obj.get("expected")),
            evaluator=evaluator,
            weight=float(weight),
            tags=_str_list(obj.get("tags"), f"{where}.tags") or (),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "input": self.input.to_dict(),
            "expected": self.expected.to_dict(),
            "evaluator": self.evaluator,
            "weight": self.weight,
            "tags": list(self.tags),
        }
        if self.description is not None:
            out["description"] = self.description
        return out


# ---------------------------------------------------------------------------
# Benchmark definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkConfig:
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    seed: Optional[int] = None
    timeout_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, obj: Optional[Dict[str, Any]], where: str = "config") -> "BenchmarkConfig":
        obj = obj or {}
        if not isinstance(obj, dict):
            raise DatasetError(f"{where}: expected an object, got {type(obj).__name__}")
        timeout = obj.get("timeoutMs", obj.get("timeout"))
        temperature = obj.get("temperature")
        if temperature is not None and (isinstance(temperature, bool) or not isinstance(temperature, (int, float))):
            raise DatasetError(f"{where}: temperature must be a number")
        seed = obj.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise DatasetError(f"{where}: seed must be an integer")
        return cls(
            max_tokens=_positive_int(obj.get("maxTokens"), "maxTokens", where),
            temperature=float(temperature) if temperature is not None else None,
            seed=seed,
            timeout_ms=_positive_int(timeout, "timeoutMs", where),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.max_tokens is not None:
            out["maxTokens"] = self.max_tokens
        if self.temperature is not None:
            out["temperature"] = self.temperature
        if self.seed is not None:
            out["seed"] = self.seed
        if self.timeout_ms is not None:
            out["timeoutMs"] = self.timeout_ms
        return out


@dataclass(frozen=True)
class BenchmarkDefinition:
    id: str
    name: str
    version: str
    task_type: TaskType
    category: str
    test_cases: Tuple[TestCase, ...]
    config: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    description: str = ""
    author: Optional[str] = None

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "BenchmarkDefinition":
        bench_id = str(_require(obj, "id", "benchmark"))
        where = f"benchmark '{bench_id}'"
        task_type = _require(obj, "taskType", where)
        if task_type not in TASK_TYPES:
            raise DatasetError(f"{where}: unknown taskType '{task_type}'")
        raw_cases = obj.get("testCases") or []
        if not isinstance(raw_cases, list):
            raise DatasetError(f"{where}: testCases must be a list")
        test_cases = tuple(TestCase.from_dict(tc) for tc in raw_cases)
        seen = set()
        for tc in test_cases:
            if tc.id in seen:
                raise DatasetError(f"{where}: duplicate test case id '{tc.id}'")
            seen.add(tc.id)
        return cls(
            id=bench_id,
            name=str(obj.get("name") or bench_id),
            description=str(obj.get("description") or ""),
            version=str(obj.get("version") or "1.0.0"),
            task_type=task_type,
            category=str(obj.get("category") or "general"),
            test_cases=test_cases,
            config=BenchmarkConfig.from_dict(obj.get("config"), f"{where}.config"),
            author=obj.get("author"),
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "taskType": self.task_type,
            "category": self.category,
            "testCaseCount": len(self.test_cases),
        }

    def to_dict(self) -> Dict[str, Any]:
        out = self.summary()
        out.pop("testCaseCount")
        out["testCases"] = [tc.to_dict() for tc in self.test_cases]
        out["config"] = self.config.to_dict()
        if self.author is not None:
            out["author"] = self.author
        return out


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass(frozen=True)
class TestCaseOutput:
    __test__ = False

    content: str = ""
    function_call: Optional[FunctionCall] = None
    raw_response: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"content": self.content}
        if self.function_call is not None:
            out["functionCall"] = self.function_call.to_dict()
        if self.raw_response is not None:
            out["rawResponse"] = self.raw_response
        return out


@dataclass(frozen=True)
class TestCaseResult:
    __test__ = False

    test_case_id: str
    output: TestCaseOutput
    passed: bool
    score: float
    reason: str
    latency_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score must be within [0, 1], got {self.score}")
        if self.latency_ms < 0 or self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("latency and token counts must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "testCaseId": self.test_case_id,
            "output": self.output.to_dict(),
            "passed": self.passed,
            "score": self.score,
            "reason": self.reason,
            "latencyMs": self.latency_ms,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvalRunConfig:
    """What to run: benchmark, target model, test case selection, ownership."""

    benchmark_id: str
    provider: str
    model_id: str
    benchmark_version: Optional[str] = None
    test_case_ids: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    org_id: Optional[str] = None
    scope: Scope = "global"

    def __post_init__(self) -> None:
        if self.scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got {self.scope!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "benchmarkId": self.benchmark_id,
            "provider": self.provider,
            "modelId": self.model_id,
            "benchmarkVersion": self.benchmark_version,
            "testCaseIds": list(self.test_case_ids),
            "tags": list(self.tags),
            "orgId": self.org_id,
            "scope": self.scope,
        }


ProgressCallback = Callable[[int, int, Optional[TestCaseResult]], Any]


@dataclass(frozen=True)
class RunnerOptions:
    """How to run: concurrency, deadlines, retries, and mock mode."""

    parallelism: int = 1
    timeout_ms: int = 30000
    retries: int = 0
    seed: Optional[int] = None
    api_key: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None
    mock_mode: bool = False
    # Base delay for exponential backoff between retries; 0 retries immediately
    retry_backoff_ms: int = 0

    def __post_init__(self) -> None:
        if self.parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.retry_backoff_ms < 0:
            raise ValueError("retry_backoff_ms must be >= 0")


# ---------------------------------------------------------------------------
# Evaluation run record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Aggregates:
    overall_score: float = 0.0
    accuracy: float = 0.0
    latency_p50_ms: int = 0
    latency_p95_ms: int = 0
    latency_p99_ms: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    # Pricing data is not wired in; always 0.
    estimated_cost_cents: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "accuracy": self.accuracy,
            "latencyP50Ms": self.latency_p50_ms,
            "latencyP95Ms": self.latency_p95_ms,
            "latencyP99Ms": self.latency_p99_ms,
            "totalInputTokens": self.total_input_tokens,
            "totalOutputTokens": self.total_output_tokens,
            "estimatedCostCents": self.estimated_cost_cents,
        }


@dataclass(frozen=True)
class EvaluationRun:
    """Persisted record of one benchmark run."""

    id: str
    provider: str
    model_id: str
    benchmark_id: str
    benchmark_version: str
    status: EvalStatus
    started_at: datetime
    aggregates: Aggregates = field(default_factory=Aggregates)
    test_case_results: Tuple[TestCaseResult, ...] = ()
    run_config: Dict[str, Any] = field(default_factory=dict)
    org_id: Optional[str] = None
    scope: Scope = "global"
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

    def summary(self) -> Dict[str, Any]:
        """Listing view: headline numbers without per-test-case results."""
        return {
            "id": self.id,
            "provider": self.provider,
            "modelId": self.model_id,
            "benchmarkId": self.benchmark_id,
            "benchmarkVersion": self.benchmark_version,
            "overallScore": self.aggregates.overall_score,
            "accuracy": self.aggregates.accuracy,
            "latencyP50Ms": self.aggregates.latency_p50_ms,
            "latencyP95Ms": self.aggregates.latency_p95_ms,
            "status": self.status,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "testCaseCount": len(self.test_case_results),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "modelId": self.model_id,
            "benchmarkId": self.benchmark_id,
            "benchmarkVersion": self.benchmark_version,
            **self.aggregates.to_dict(),
            "testCaseResults": [r.to_dict() for r in self.test_case_results],
            "runConfig": self.run_config,
            "orgId": self.org_id,
            "scope": self.scope,
            "status": self.status,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class EvaluationResult:
    """What ``run_benchmark`` hands back: the final record plus the caller's config."""

    id: str
    provider: str
    model_id: str
    benchmark_id: str
    benchmark_version: str
    status: EvalStatus
    aggregates: Aggregates
    test_case_results: Tuple[TestCaseResult, ...]
    run_config: EvalRunConfig
    org_id: Optional[str]
    scope: Scope
    started_at: str
    completed_at: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_record(cls, record: EvaluationRun, config: EvalRunConfig) -> "EvaluationResult":
        return cls(
            id=record.id,
            provider=record.provider,
            model_id=record.model_id,
            benchmark_id=record.benchmark_id,
            benchmark_version=record.benchmark_version,
            status=record.status,
            aggregates=record.aggregates,
            test_case_results=record.test_case_results,
            run_config=config,
            org_id=record.org_id,
            scope=record.scope,
            started_at=_iso(record.started_at) or "",
            completed_at=_iso(record.completed_at),
            error_message=record.error_message,
        )

    # Flat accessors for the headline numbers
    @property
    def overall_score(self) -> float:
        return self.aggregates.overall_score

    @property
    def accuracy(self) -> float:
        return self.aggregates.accuracy

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "provider": self.provider,
            "modelId": self.model_id,
            "benchmarkId": self.benchmark_id,
            "benchmarkVersion": self.benchmark_version,
            **self.aggregates.to_dict(),
            "testCaseResults": [r.to_dict() for r in self.test_case_results],
            "runConfig": self.run_config.to_dict(),
            "orgId": self.org_id,
            "scope": self.scope,
            "status": self.status,
            "startedAt": self.started_at,
        }
        if self.completed_at is not None:
            out["completedAt"] = self.completed_at
        if self.error_message is not None:
            out["errorMessage"] = self.error_message
        return out
