import asyncio
import json
from typing import Any, Dict, List

import pytest

from model_eval.bench.catalog import BenchmarkCatalog
from model_eval.bench.repository import InMemoryEvaluationRepository
from model_eval.bench.runner import (
    BenchmarkNotFoundError,
    BenchmarkRunner,
    ProviderNotFoundError,
    extract_function_call,
    select_test_cases,
)
from model_eval.bench.types import BenchmarkDefinition, EvalRunConfig, RunnerOptions
from model_eval.providers.base import ProviderAdapter, ProviderRegistry


def _benchmark(config=None, n=4) -> BenchmarkDefinition:
    cases = []
    for i in range(n):
        cases.append({
            "id": f"case-{i}",
            "name": f"Case {i}",
            "input": {"messages": [{"role": "user", "content": f"say answer {i}"}]},
            "expected": {"contains": [f"answer {i}"]},
            "evaluator": "contains",
            "weight": 1 + i,
            "tags": ["even"] if i % 2 == 0 else ["odd"],
        })
    return BenchmarkDefinition.from_dict({
        "id": "bench.unit",
        "name": "Unit",
        "version": "2.1.0",
        "taskType": "reasoning",
        "category": "unit",
        "testCases": cases,
        "config": config or {},
    })


class EchoProvider(ProviderAdapter):
    name = "echo"

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []

    async def execute(self, request):
        self.requests.append(request)
        last = request["params"]["messages"][-1]["content"]
        return {
            "content": last,
            "usage": {"promptTokens": 3, "completionTokens": 2, "totalTokens": 5},
            "finishReason": "stop",
            "metadata": {"provider": self.name},
        }


class ExplodingProvider(ProviderAdapter):
    name = "exploding"

    def __init__(self) -> None:
        self.calls = 0

    async def execute(self, request):
        self.calls += 1
        raise AssertionError("provider must not be called")


class FlakyProvider(EchoProvider):
    name = "flaky"

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def execute(self, request):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"upstream hiccup #{self.calls}")
        return await super().execute(request)


class HangingProvider(ProviderAdapter):
    name = "hanging"

    def __init__(self) -> None:
        self.calls = 0
        self.cancelled = 0

    async def execute(self, request):
        self.calls += 1
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return {}


class ToolProvider(ProviderAdapter):
    name = "tools"

    def __init__(self, arguments: str) -> None:
        self.arguments = arguments

    async def execute(self, request):
        return {
            "content": "",
            "toolCalls": [
                {"id": "1", "type": "function", "function": {"name": "get_weather", "arguments": self.arguments}},
                {"id": "2", "type": "function", "function": {"name": "ignored", "arguments": "{}"}},
            ],
            "usage": {"promptTokens": 1, "completionTokens": 1, "totalTokens": 2},
        }


def _runner(benchmark, *adapters, repository=None):
    catalog = BenchmarkCatalog([benchmark])
    providers = ProviderRegistry()
    for a in adapters:
        providers.register(a)
    repo = repository if repository is not None else InMemoryEvaluationRepository()
    return BenchmarkRunner(catalog, providers, repo), repo


def _config(provider, **kw):
    return EvalRunConfig(benchmark_id="bench.unit", provider=provider, model_id="m-1", **kw)


@pytest.mark.asyncio
async def test_run_completes_and_persists_record():
    provider = EchoProvider()
    runner, repo = _runner(_benchmark(), provider)

    result = await runner.run_benchmark(_config("echo"), RunnerOptions(parallelism=2))

    assert result.status == "completed"
    assert result.benchmark_version == "2.1.0"
    assert [r.test_case_id for r in result.test_case_results] == ["case-0", "case-1", "case-2", "case-3"]
    assert all(r.passed for r in result.test_case_results)
    assert result.overall_score == pytest.approx(1.0)
    assert result.accuracy == 1.0
    assert result.aggregates.total_input_tokens == 12
    assert result.aggregates.latency_p50_ms >= 1
    assert result.completed_at is not None

    stored = await repo.get_evaluation(result.id)
    assert stored.status == "completed"
    assert stored.test_case_results == result.test_case_results
    assert stored.run_config["execution"]["parallelism"] == 2
    assert result.to_dict()["runConfig"]["benchmarkId"] == "bench.unit"


@pytest.mark.asyncio
async def test_request_uses_benchmark_settings_and_defaults():
    provider = EchoProvider()
    runner, _ = _runner(_benchmark(config={"maxTokens": 64, "temperature": 0.2, "timeoutMs": 1234}, n=1), provider)
    await runner.run_benchmark(_config("echo"), RunnerOptions(api_key="k"))
    req = provider.requests[0]
    assert req["operation"] == "chat.completions"
    assert req["model"] == "m-1"
    assert req["apiKey"] == "k"
    assert req["timeout"] == 1234
    assert req["params"]["max_tokens"] == 64
    assert req["params"]["temperature"] == 0.2

    provider2 = EchoProvider()
    runner2, _ = _runner(_benchmark(n=1), provider2)
    await runner2.run_benchmark(_config("echo"), RunnerOptions(timeout_ms=999))
    req2 = provider2.requests[0]
    assert req2["timeout"] == 999
    assert req2["params"]["max_tokens"] == 500
    assert req2["params"]["temperature"] == 0


@pytest.mark.asyncio
async def test_not_found_raise_before_record_exists():
    repo = InMemoryEvaluationRepository()
    runner, _ = _runner(_benchmark(), EchoProvider(), repository=repo)

    with pytest.raises(BenchmarkNotFoundError, match="Benchmark not found: nope"):
        await runner.run_benchmark(EvalRunConfig(benchmark_id="nope", provider="echo", model_id="m"))
    with pytest.raises(ProviderNotFoundError, match="Provider not found: ghost"):
        await runner.run_benchmark(_config("ghost"))
    assert len(repo) == 0


@pytest.mark.asyncio
async def test_mock_mode_never_calls_provider():
    provider = ExplodingProvider()
    runner, _ = _runner(_benchmark(), provider)

    result = await runner.run_benchmark(_config("exploding"), RunnerOptions(mock_mode=True, seed=11, parallelism=3))

    assert provider.calls == 0
    assert result.status == "completed"
    assert len(result.test_case_results) == 4
    assert 0.0 <= result.overall_score <= 1.0
    assert result.aggregates.latency_p50_ms >= 50


@pytest.mark.asyncio
async def test_mock_mode_is_reproducible_with_seed():
    runner, _ = _runner(_benchmark(n=6), ExplodingProvider())
    opts = RunnerOptions(mock_mode=True, seed=42, parallelism=4)
    first = await runner.run_benchmark(_config("exploding"), opts)
    second = await runner.run_benchmark(_config("exploding"), RunnerOptions(mock_mode=True, seed=42, parallelism=1))
    assert first.test_case_results == second.test_case_results
    assert first.id != second.id


@pytest.mark.asyncio
async def test_retry_then_success_uses_third_attempt():
    provider = FlakyProvider(failures=2)
    runner, _ = _runner(_benchmark(n=1), provider)

    result = await runner.run_benchmark(_config("flaky"), RunnerOptions(retries=2))

    assert provider.calls == 3
    r = result.test_case_results[0]
    assert r.passed is True
    assert r.output.content == "say answer 0"
    assert r.error is None


@pytest.mark.asyncio
async def test_retries_exhausted_records_last_error():
    provider = FlakyProvider(failures=5)
    runner, _ = _runner(_benchmark(n=1), provider)

    result = await runner.run_benchmark(_config("flaky"), RunnerOptions(retries=1))

    assert provider.calls == 2
    r = result.test_case_results[0]
    assert r.passed is False
    assert r.score == 0.0
    assert r.latency_ms == 0
    assert r.reason == "Execution failed: upstream hiccup #2"
    assert r.error == "upstream hiccup #2"
    # The run itself still completes
    assert result.status == "completed"
    assert result.aggregates.latency_p50_ms == 0


@pytest.mark.asyncio
async def test_timeout_is_not_retried_and_cancels_call():
    provider = HangingProvider()
    runner, _ = _runner(_benchmark(n=1), provider)

    result = await runner.run_benchmark(_config("hanging"), RunnerOptions(timeout_ms=50, retries=3))

    r = result.test_case_results[0]
    assert r.passed is False
    assert "Timeout" in r.reason
    assert r.reason == "Execution failed: Timeout"
    assert r.latency_ms == 0
    assert provider.calls == 1
    assert provider.cancelled == 1


@pytest.mark.asyncio
async def test_invalid_params_fail_without_dispatch():
    provider = EchoProvider()
    bench = BenchmarkDefinition.from_dict({
        "id": "bench.unit",
        "name": "Empty input",
        "taskType": "reasoning",
        "testCases": [{"id": "empty", "name": "empty", "evaluator": "exact", "expected": {"content": "x"}}],
    })
    runner, _ = _runner(bench, provider)

    result = await runner.run_benchmark(_config("echo"), RunnerOptions(retries=2))

    r = result.test_case_results[0]
    assert r.passed is False
    assert r.reason.startswith("Execution failed: Invalid params:")
    assert provider.requests == []


@pytest.mark.asyncio
async def test_progress_fires_per_batch_with_last_indexed_result():
    calls = []

    def on_progress(completed, total, last):
        calls.append((completed, total, last.test_case_id))

    runner, _ = _runner(_benchmark(n=5), EchoProvider())
    await runner.run_benchmark(_config("echo"), RunnerOptions(parallelism=2, on_progress=on_progress))

    assert calls == [(2, 5, "case-1"), (4, 5, "case-3"), (5, 5, "case-4")]


@pytest.mark.asyncio
async def test_async_progress_callback_is_awaited():
    seen = []

    async def on_progress(completed, total, last):
        await asyncio.sleep(0)
        seen.append(completed)

    runner, _ = _runner(_benchmark(n=3), EchoProvider())
    await runner.run_benchmark(_config("echo"), RunnerOptions(parallelism=3, on_progress=on_progress))
    assert seen == [3]


@pytest.mark.asyncio
async def test_batches_run_concurrently_within_and_sequentially_across():
    active = 0
    peak = 0

    class SlowProvider(EchoProvider):
        name = "slow"

        async def execute(self, request):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return await super().execute(request)

    runner, _ = _runner(_benchmark(n=6), SlowProvider())
    await runner.run_benchmark(_config("slow"), RunnerOptions(parallelism=3))
    assert peak == 3


@pytest.mark.asyncio
async def test_filter_by_ids_then_tags():
    runner, _ = _runner(_benchmark(n=4), EchoProvider())

    by_ids = await runner.run_benchmark(_config("echo", test_case_ids=("case-3", "case-0")))
    assert [r.test_case_id for r in by_ids.test_case_results] == ["case-0", "case-3"]

    by_tags = await runner.run_benchmark(_config("echo", tags=("odd",)))
    assert [r.test_case_id for r in by_tags.test_case_results] == ["case-1", "case-3"]

    both = await runner.run_benchmark(_config("echo", test_case_ids=("case-0", "case-1"), tags=("odd",)))
    assert [r.test_case_id for r in both.test_case_results] == ["case-1"]

    none = await runner.run_benchmark(_config("echo", tags=("missing",)))
    assert none.test_case_results == ()
    assert none.overall_score == 0.0 and none.accuracy == 0.0


def test_select_test_cases_keeps_order():
    cases = _benchmark(n=4).test_cases
    assert [tc.id for tc in select_test_cases(cases, ("case-2", "case-1"))] == ["case-1", "case-2"]


@pytest.mark.asyncio
async def test_orchestration_failure_marks_run_failed_and_reraises():
    def on_progress(completed, total, last):
        raise RuntimeError("progress sink down")

    runner, repo = _runner(_benchmark(n=2), EchoProvider())
    with pytest.raises(RuntimeError, match="progress sink down"):
        await runner.run_benchmark(_config("echo"), RunnerOptions(on_progress=on_progress))

    (record,) = await repo.query_evaluations()
    assert record.status == "failed"
    assert record.error_message == "progress sink down"
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_failed_write_does_not_mask_original_error():
    class BrokenRepo(InMemoryEvaluationRepository):
        async def update_evaluation(self, evaluation_id, **fields):
            raise ConnectionError("db unavailable")

    runner, repo = _runner(_benchmark(n=1), EchoProvider(), repository=BrokenRepo())
    with pytest.raises(ConnectionError, match="db unavailable"):
        await runner.run_benchmark(_config("echo"))
    (record,) = await repo.query_evaluations()
    assert record.status == "running"


@pytest.mark.asyncio
async def test_function_call_extraction_feeds_evaluator():
    bench = BenchmarkDefinition.from_dict({
        "id": "bench.unit",
        "name": "Tools",
        "taskType": "function_calling",
        "testCases": [{
            "id": "weather",
            "name": "weather",
            "input": {
                "messages": [{"role": "user", "content": "Weather in Tokyo?"}],
                "tools": [{"name": "get_weather", "parameters": {"type": "object"}}],
            },
            "expected": {"functionCall": {"name": "get_weather", "arguments": {"location": "Tokyo"}}},
            "evaluator": "function_call",
        }],
    })
    runner, _ = _runner(bench, ToolProvider(json.dumps({"location": "Tokyo"})))
    good = await runner.run_benchmark(_config("tools"))
    r = good.test_case_results[0]
    assert r.output.function_call.name == "get_weather"
    assert r.passed is True and r.score == 1.0

    runner, _ = _runner(bench, ToolProvider("{not json"))
    bad = await runner.run_benchmark(_config("tools"))
    r = bad.test_case_results[0]
    assert r.output.function_call.arguments == {}
    assert r.score == pytest.approx(0.5)
    assert r.passed is False


def test_extract_function_call_variants():
    assert extract_function_call({"content": "x"}) is None
    fc = extract_function_call({"toolCalls": [{"function": {"name": "f", "arguments": "[1, 2]"}}]})
    assert fc.name == "f" and fc.arguments == {}
    fc = extract_function_call({"toolCalls": [{"function": {"name": "f", "arguments": {"a": 1}}}]})
    assert fc.arguments == {"a": 1}


@pytest.mark.asyncio
async def test_tools_are_formatted_for_provider():
    provider = EchoProvider()
    bench = BenchmarkDefinition.from_dict({
        "id": "bench.unit",
        "name": "Tools",
        "taskType": "function_calling",
        "testCases": [{
            "id": "t",
            "name": "t",
            "input": {
                "prompt": "hi",
                "tools": [
                    {"name": "generic", "description": "d", "parameters": {"type": "object"}},
                    {"type": "function", "function": {"name": "native", "parameters": {}}},
                ],
            },
            "evaluator": "contains",
        }],
    })
    runner, _ = _runner(bench, provider)
    await runner.run_benchmark(_config("echo"))
    params = provider.requests[0]["params"]
    assert params["messages"] == [{"role": "user", "content": "hi"}]
    assert params["tools"] == [
        {"type": "function", "function": {"name": "generic", "description": "d", "parameters": {"type": "object"}}},
        {"type": "function", "function": {"name": "native", "parameters": {}}},
    ]


class ScriptedProvider(EchoProvider):
    """Returns the scripted response for a prompt, else echoes."""

    name = "scripted"

    def __init__(self, responses: Dict[str, Any]) -> None:
        super().__init__()
        self.responses = responses

    async def execute(self, request):
        self.requests.append(request)
        last = request["params"]["messages"][-1]["content"]
        if last in self.responses:
            return self.responses[last]
        return {"content": last, "usage": {"promptTokens": 1, "completionTokens": 1, "totalTokens": 2}}


@pytest.mark.asyncio
async def test_malformed_usage_is_isolated_to_its_case():
    provider = ScriptedProvider({
        "say answer 1": {"content": "say answer 1", "usage": {"promptTokens": "n/a", "completionTokens": None}},
    })
    runner, repo = _runner(_benchmark(n=3), provider)

    result = await runner.run_benchmark(_config("scripted"), RunnerOptions(parallelism=3))

    assert result.status == "completed"
    assert [r.test_case_id for r in result.test_case_results] == ["case-0", "case-1", "case-2"]
    r = result.test_case_results[1]
    assert r.passed is True
    assert r.input_tokens == 0 and r.output_tokens == 0
    assert (await repo.get_evaluation(result.id)).status == "completed"


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    {"content": "say answer 1", "toolCalls": ["not-a-call"]},
    {"content": "say answer 1", "toolCalls": [{"function": "get_weather"}]},
    {"content": "say answer 1", "toolCalls": {"function": {"name": "x"}}},
    {"content": "say answer 1", "usage": ["promptTokens", 3], "metadata": "opaque"},
])
async def test_malformed_tool_calls_do_not_fail_the_run(response):
    runner, _ = _runner(_benchmark(n=3), ScriptedProvider({"say answer 1": response}))

    result = await runner.run_benchmark(_config("scripted"), RunnerOptions(parallelism=3))

    assert result.status == "completed"
    r = result.test_case_results[1]
    assert r.output.function_call is None
    assert r.output.raw_response is None
    assert r.passed is True


@pytest.mark.asyncio
async def test_non_dict_response_fails_only_that_case():
    runner, _ = _runner(_benchmark(n=3), ScriptedProvider({"say answer 2": "just a string"}))

    result = await runner.run_benchmark(_config("scripted"), RunnerOptions(parallelism=3, retries=1))

    assert result.status == "completed"
    assert [r.passed for r in result.test_case_results] == [True, True, False]
    assert result.test_case_results[2].reason.startswith("Execution failed:")


@pytest.mark.asyncio
async def test_raising_validator_is_recorded_as_case_failure():
    class StrictProvider(EchoProvider):
        name = "strict"

        def validate_params(self, operation, params):
            if "answer 1" in params["messages"][-1]["content"]:
                raise KeyError("schema registry unavailable")
            return super().validate_params(operation, params)

    provider = StrictProvider()
    runner, repo = _runner(_benchmark(n=3), provider)

    result = await runner.run_benchmark(_config("strict"), RunnerOptions(parallelism=3))

    assert result.status == "completed"
    assert [r.passed for r in result.test_case_results] == [True, False, True]
    failed = result.test_case_results[1]
    assert "schema registry unavailable" in failed.reason
    assert failed.latency_ms == 0
    assert len(provider.requests) == 2
    assert (await repo.get_evaluation(result.id)).status == "completed"


@pytest.mark.asyncio
async def test_provider_raised_timeout_error_is_retried():
    class ReadTimeoutThenOk(EchoProvider):
        name = "read-timeout"

        def __init__(self) -> None:
            super().__init__()
            self.calls = 0

        async def execute(self, request):
            self.calls += 1
            if self.calls == 1:
                raise TimeoutError("upstream read timed out")
            return await super().execute(request)

    provider = ReadTimeoutThenOk()
    runner, _ = _runner(_benchmark(n=1), provider)

    result = await runner.run_benchmark(_config("read-timeout"), RunnerOptions(retries=1, timeout_ms=5000))

    assert provider.calls == 2
    r = result.test_case_results[0]
    assert r.passed is True
    assert r.error is None


@pytest.mark.asyncio
async def test_provider_raised_timeout_error_keeps_its_message():
    class AlwaysReadTimeout(ProviderAdapter):
        name = "always-read-timeout"

        async def execute(self, request):
            raise asyncio.TimeoutError("upstream read timed out")

    runner, _ = _runner(_benchmark(n=1), AlwaysReadTimeout())

    result = await runner.run_benchmark(_config("always-read-timeout"), RunnerOptions(retries=0, timeout_ms=5000))

    r = result.test_case_results[0]
    assert r.reason == "Execution failed: upstream read timed out"
