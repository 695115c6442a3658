"""Benchmark Runner: executes a benchmark against one provider/model.

Test cases run in sequential batches of ``parallelism``. Every case in a
batch is dispatched at once and the batch is awaited as a whole before the
next one starts, so a slow case holds its batch back instead of the pool
refilling continuously. The progress callback fires once per batch with the
last result in batch order.

Per-case failures (provider errors, timeouts, invalid requests) never escape
the batch; they become failed TestCaseResults. Anything else that goes wrong
marks the run failed and propagates.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from model_eval import telemetry
from model_eval.bench import simulate
from model_eval.bench.catalog import BenchmarkCatalog
from model_eval.bench.evaluators import EvaluatorContext, EvaluatorRegistry, build_default_registry
from model_eval.bench.metrics import compute_aggregates
from model_eval.bench.repository import EvaluationRepository
from model_eval.bench.types import (
    Aggregates,
    BenchmarkDefinition,
    EvalRunConfig,
    EvaluationResult,
    FunctionCall,
    RunnerOptions,
    TestCase,
    TestCaseOutput,
    TestCaseResult,
)
from model_eval.log import get_logger, log_event
from model_eval.providers.base import ExecuteRequest, ProviderAdapter, ProviderRegistry, ProviderResponse, format_tools

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.0
CHAT_OPERATION = "chat.completions"


class BenchmarkNotFoundError(LookupError):
    def __init__(self, benchmark_id: str):
        super().__init__(f"Benchmark not found: {benchmark_id}")
        self.benchmark_id = benchmark_id


class ProviderNotFoundError(LookupError):
    def __init__(self, provider: str):
        super().__init__(f"Provider not found: {provider}")
        self.provider = provider


class ExecutionTimeout(Exception):
    def __init__(self) -> None:
        super().__init__("Timeout")


class InvalidParamsError(ValueError):
    """The request failed ``validate_params``; retrying cannot help."""


class ProviderCallError(Exception):
    """Wraps whatever ``provider.execute`` raised, so it is never mistaken for the runner's deadline."""

    def __init__(self, error: BaseException):
        super().__init__(str(error))
        self.error = error


async def _guarded_execute(provider: ProviderAdapter, request: ExecuteRequest) -> ProviderResponse:
    try:
        return await provider.execute(request)
    except Exception as e:
        raise ProviderCallError(e) from e


def _token_count(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _failed_result(test_case: TestCase, message: str) -> TestCaseResult:
    return TestCaseResult(
        test_case_id=test_case.id,
        output=TestCaseOutput(content=""),
        passed=False,
        score=0.0,
        reason=f"Execution failed: {message}",
        latency_ms=0,
        input_tokens=0,
        output_tokens=0,
        error=message,
    )


def select_test_cases(
    test_cases: Sequence[TestCase],
    test_case_ids: Sequence[str] = (),
    tags: Sequence[str] = (),
) -> List[TestCase]:
    """Keep definition order; filter by id, then by tag intersection."""
    selected = list(test_cases)
    if test_case_ids:
        wanted = set(test_case_ids)
        selected = [tc for tc in selected if tc.id in wanted]
    if tags:
        tag_set = set(tags)
        selected = [tc for tc in selected if tag_set.intersection(tc.tags)]
    return selected


def extract_function_call(response: ProviderResponse) -> Optional[FunctionCall]:
    """First tool call only. Unparsable or non-object arguments become ``{}``."""
    tool_calls = response.get("toolCalls") or []
    if not isinstance(tool_calls, list) or not tool_calls or not isinstance(tool_calls[0], dict):
        return None
    fn = tool_calls[0].get("function")
    if not isinstance(fn, dict):
        return None
    raw_args = fn.get("arguments")
    try:
        args = json.loads(raw_args) if isinstance(raw_args, str) else raw_args
    except ValueError:
        args = None
    if not isinstance(args, dict):
        args = {}
    return FunctionCall(name=str(fn.get("name") or ""), arguments=args)


class _CallSettings:
    __slots__ = ("timeout_ms", "max_tokens", "temperature", "seed")

    def __init__(self, benchmark: BenchmarkDefinition, options: RunnerOptions):
        cfg = benchmark.config
        self.timeout_ms: int = cfg.timeout_ms or options.timeout_ms
        self.max_tokens: int = cfg.max_tokens or DEFAULT_MAX_TOKENS
        self.temperature: float = cfg.temperature if cfg.temperature is not None else DEFAULT_TEMPERATURE
        self.seed: Optional[int] = options.seed if options.seed is not None else cfg.seed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeoutMs": self.timeout_ms,
            "maxTokens": self.max_tokens,
            "temperature": self.temperature,
            "seed": self.seed,
        }


class BenchmarkRunner:
    def __init__(
        self,
        catalog: BenchmarkCatalog,
        providers: ProviderRegistry,
        repository: EvaluationRepository,
        evaluators: Optional[EvaluatorRegistry] = None,
    ):
        self.catalog = catalog
        self.providers = providers
        self.repository = repository
        self.evaluators = evaluators or build_default_registry()

    async def run_benchmark(self, config: EvalRunConfig, options: Optional[RunnerOptions] = None) -> EvaluationResult:
        options = options or RunnerOptions()

        benchmark = self.catalog.get(config.benchmark_id)
        if benchmark is None:
            raise BenchmarkNotFoundError(config.benchmark_id)
        provider = self.providers.get(config.provider)
        if provider is None:
            raise ProviderNotFoundError(config.provider)

        settings = _CallSettings(benchmark, options)
        run_config = config.to_dict()
        run_config["execution"] = {
            "parallelism": options.parallelism,
            "retries": options.retries,
            "mockMode": options.mock_mode,
            **settings.to_dict(),
        }
        record = await self.repository.create_evaluation(
            provider=config.provider,
            model_id=config.model_id,
            benchmark_id=benchmark.id,
            benchmark_version=config.benchmark_version or benchmark.version,
            status="running",
            started_at=_now(),
            aggregates=Aggregates(),
            test_case_results=(),
            run_config=run_config,
            org_id=config.org_id,
            scope=config.scope,
        )
        log_event(
            logger,
            "eval_run_started",
            evaluationId=record.id,
            benchmarkId=benchmark.id,
            provider=config.provider,
            modelId=config.model_id,
            mockMode=options.mock_mode,
        )
        telemetry.RUNS_IN_PROGRESS.inc()
        t0 = time.perf_counter()
        try:
            test_cases = select_test_cases(benchmark.test_cases, config.test_case_ids, config.tags)
            results = await self._execute_batches(test_cases, provider, config.model_id, settings, options)
            aggregates = compute_aggregates(results, benchmark.test_cases)
            updated = await self.repository.update_evaluation(
                record.id,
                status="completed",
                completed_at=_now(),
                aggregates=aggregates,
                test_case_results=tuple(results),
            )
            if updated is None:
                raise RuntimeError(f"Evaluation record disappeared: {record.id}")
        except Exception as e:
            await self._mark_failed(record.id, e)
            telemetry.RUNS_TOTAL.labels(status="failed").inc()
            raise
        finally:
            telemetry.RUNS_IN_PROGRESS.dec()

        telemetry.RUNS_TOTAL.labels(status="completed").inc()
        log_event(
            logger,
            "eval_run_completed",
            evaluationId=record.id,
            benchmarkId=benchmark.id,
            testCases=len(results),
            overallScore=round(aggregates.overall_score, 4),
            accuracy=round(aggregates.accuracy, 4),
            durationMs=int((time.perf_counter() - t0) * 1000),
        )
        return EvaluationResult.from_record(updated, config)

    async def _mark_failed(self, evaluation_id: str, error: BaseException) -> None:
        message = str(error) or type(error).__name__
        log_event(logger, "eval_run_failed", logging.ERROR, evaluationId=evaluation_id, error=message)
        try:
            await self.repository.update_evaluation(
                evaluation_id,
                status="failed",
                completed_at=_now(),
                error_message=message,
            )
        except Exception as write_err:
            # The original error is what the caller needs; keep the write failure in the logs
            log_event(
                logger,
                "eval_run_fail_write_error",
                logging.ERROR,
                evaluationId=evaluation_id,
                error=f"{type(write_err).__name__}: {write_err}",
            )

    async def _execute_batches(
        self,
        test_cases: List[TestCase],
        provider: ProviderAdapter,
        model_id: str,
        settings: _CallSettings,
        options: RunnerOptions,
    ) -> List[TestCaseResult]:
        results: List[TestCaseResult] = []
        total = len(test_cases)
        size = options.parallelism
        for start in range(0, total, size):
            batch = test_cases[start : start + size]
            batch_results = await asyncio.gather(
                *(self._execute_test_case(tc, provider, model_id, settings, options) for tc in batch)
            )
            results.extend(batch_results)
            log_event(
                logger,
                "eval_batch_completed",
                logging.DEBUG,
                completed=len(results),
                total=total,
                batchSize=len(batch),
            )
            if options.on_progress is not None:
                ret = options.on_progress(len(results), total, batch_results[-1])
                if inspect.isawaitable(ret):
                    await ret
        return results

    async def _execute_test_case(
        self,
        test_case: TestCase,
        provider: ProviderAdapter,
        model_id: str,
        settings: _CallSettings,
        options: RunnerOptions,
    ) -> TestCaseResult:
        if options.mock_mode:
            result = simulate.simulate_test_case(test_case, simulate.rng_for(test_case, settings.seed))
            telemetry.TEST_CASES_TOTAL.labels(outcome="passed" if result.passed else "failed").inc()
            return result

        last_error: Optional[BaseException] = None
        for attempt in range(options.retries + 1):
            if attempt > 0:
                backoff_ms = options.retry_backoff_ms * (2 ** (attempt - 1))
                log_event(
                    logger,
                    "eval_test_case_retry",
                    testCaseId=test_case.id,
                    attempt=attempt,
                    backoff_ms=backoff_ms,
                    error=str(last_error),
                )
                telemetry.PROVIDER_RETRIES_TOTAL.inc()
                if backoff_ms:
                    await asyncio.sleep(backoff_ms / 1000.0)
            try:
                request = self._build_request(test_case, provider, model_id, settings, options)
                t1 = time.perf_counter()
                try:
                    # wait_for cancels the provider coroutine when the deadline passes
                    response = await asyncio.wait_for(
                        _guarded_execute(provider, request), timeout=settings.timeout_ms / 1000.0
                    )
                except asyncio.TimeoutError:
                    raise ExecutionTimeout() from None
                latency_ms = max(1, round((time.perf_counter() - t1) * 1000))
                result = self._score(test_case, response, latency_ms)
            except InvalidParamsError as e:
                return self._record_failure(test_case, str(e))
            except ExecutionTimeout as e:
                last_error = e
                telemetry.PROVIDER_TIMEOUTS_TOTAL.inc()
                log_event(
                    logger,
                    "eval_test_case_timeout",
                    logging.WARNING,
                    testCaseId=test_case.id,
                    timeoutMs=settings.timeout_ms,
                )
                break
            except ProviderCallError as e:
                last_error = e.error
                continue
            except Exception as e:
                # Malformed response or a broken adapter helper; same retry budget as a provider error
                last_error = e
                continue
            telemetry.TEST_CASE_LATENCY_SECONDS.labels(provider=provider.name).observe(latency_ms / 1000.0)
            telemetry.TEST_CASES_TOTAL.labels(outcome="passed" if result.passed else "failed").inc()
            return result

        return self._record_failure(test_case, str(last_error) if last_error is not None else "Unknown error")

    def _build_request(
        self,
        test_case: TestCase,
        provider: ProviderAdapter,
        model_id: str,
        settings: _CallSettings,
        options: RunnerOptions,
    ) -> ExecuteRequest:
        params: Dict[str, Any] = {
            "messages": test_case.input.chat_messages(),
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        }
        if settings.seed is not None:
            params["seed"] = settings.seed
        if test_case.input.tools:
            params["tools"] = format_tools(test_case.input.tools, provider.tool_format)

        validation = provider.validate_params(CHAT_OPERATION, params)
        if not validation.get("valid", False):
            raise InvalidParamsError(f"Invalid params: {'; '.join(validation.get('errors') or [])}")
        return {
            "operation": CHAT_OPERATION,
            "model": model_id,
            "params": params,
            "apiKey": options.api_key or "",
            "timeout": settings.timeout_ms,
        }

    def _score(self, test_case: TestCase, response: ProviderResponse, latency_ms: int) -> TestCaseResult:
        content = response.get("content") or ""
        if not isinstance(content, str):
            content = json.dumps(content, default=str)
        function_call = extract_function_call(response)
        verdict = self.evaluators.evaluate(
            EvaluatorContext(test_case=test_case, output=content, function_call=function_call)
        )
        usage = response.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        metadata = response.get("metadata")
        return TestCaseResult(
            test_case_id=test_case.id,
            output=TestCaseOutput(
                content=content,
                function_call=function_call,
                raw_response=metadata if isinstance(metadata, dict) else None,
            ),
            passed=verdict.passed,
            score=verdict.score,
            reason=verdict.reason,
            latency_ms=latency_ms,
            input_tokens=_token_count(usage.get("promptTokens")),
            output_tokens=_token_count(usage.get("completionTokens")),
        )

    def _record_failure(self, test_case: TestCase, message: str) -> TestCaseResult:
        telemetry.TEST_CASES_TOTAL.labels(outcome="error").inc()
        log_event(logger, "eval_test_case_failed", logging.WARNING, testCaseId=test_case.id, error=message)
        return _failed_result(test_case, message)
