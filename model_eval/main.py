import os
import time
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

# Load environment variables from .env, but not under pytest to keep tests deterministic
from dotenv import load_dotenv

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from model_eval import config
from model_eval.bench.catalog import build_catalog
from model_eval.bench.evaluators import build_default_registry
from model_eval.bench.repository import InMemoryEvaluationRepository
from model_eval.bench.runner import BenchmarkRunner
from model_eval.bench.types import TASK_TYPES, EvalRunConfig, RunnerOptions
from model_eval.log import get_logger, log_event
from model_eval.middleware.request_id import RequestIdMiddleware
from model_eval.providers.factory import build_provider_registry, requires_api_key, resolve_api_key
from model_eval.telemetry import HTTP_REQUEST_DURATION_SECONDS, HTTP_REQUESTS_TOTAL

logger = get_logger("model_eval.api")


def _init_state(app: FastAPI) -> None:
    catalog = build_catalog()
    providers = build_provider_registry()
    repository = InMemoryEvaluationRepository()
    evaluators = build_default_registry()
    app.state.catalog = catalog
    app.state.providers = providers
    app.state.repository = repository
    app.state.evaluators = evaluators
    app.state.runner = BenchmarkRunner(catalog, providers, repository, evaluators)
    log_event(
        logger,
        "service_state_ready",
        benchmarks=len(catalog),
        providers=providers.names(),
        evaluators=evaluators.names(),
    )


def _state(request: Request):
    # TestClient without a context manager skips lifespan; build lazily
    if getattr(request.app.state, "runner", None) is None:
        _init_state(request.app)
    return request.app.state


@asynccontextmanager
async def lifespan(app: FastAPI):
    _init_state(app)
    yield


app = FastAPI(
    title="Model Eval API",
    description="Runs benchmark suites against LLM providers and stores scored evaluation runs.",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(RequestIdMiddleware)


# HTTP metrics middleware
@app.middleware("http")
async def _http_metrics_middleware(request: Request, call_next):
    t0 = time.perf_counter()
    method = request.method
    path = request.url.path
    status_code = 500
    try:
        response = await call_next(request)
        status_code = getattr(response, "status_code", 500)
        return response
    finally:
        status_class = f"{status_code // 100}xx"
        HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status_class=status_class).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(time.perf_counter() - t0)


@app.get("/health", tags=["meta"], description="Liveness endpoint for health checks.")
async def health():
    return {"status": "ok"}


@app.get("/metrics", tags=["meta"], include_in_schema=False)
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------


@app.get("/api/v1/benchmarks", tags=["benchmarks"], description="List benchmarks (without test cases).")
async def list_benchmarks(request: Request, taskType: Optional[str] = Query(None)):
    catalog = _state(request).catalog
    if taskType:
        if taskType not in TASK_TYPES:
            return JSONResponse(
                {"error": "Invalid task type", "details": f"taskType must be one of {', '.join(TASK_TYPES)}"},
                status_code=400,
            )
        benchmarks = catalog.by_task_type(taskType)
    else:
        benchmarks = catalog.all()
    return {"benchmarks": [b.summary() for b in benchmarks], "summary": catalog.summary()}


@app.get("/api/v1/benchmarks/{benchmark_id}", tags=["benchmarks"], description="Full benchmark definition.")
async def get_benchmark(request: Request, benchmark_id: str):
    benchmark = _state(request).catalog.get(benchmark_id)
    if benchmark is None:
        return JSONResponse({"error": "Benchmark not found"}, status_code=404)
    return benchmark.to_dict()


def _opt_int(body: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    raw = body.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{key} must be an integer")
    return raw


def _opt_str_list(body: Dict[str, Any], key: str) -> List[str]:
    raw = body.get(key) or []
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise ValueError(f"{key} must be a list of strings")
    return raw


@app.post(
    "/api/v1/benchmarks/run",
    tags=["benchmarks"],
    description="Run a benchmark against a provider/model and return the scored evaluation.",
)
async def run_benchmark(
    request: Request,
    body: Dict[str, Any] = Body(
        ...,
        description="{ provider, modelId, benchmarkId, testCaseIds?, tags?, seed?, mock?, parallelism?, retries?, timeoutMs? }",
    ),
):
    state = _state(request)
    req_id = getattr(request.state, "request_id", None)
    body = body or {}
    provider = str(body.get("provider") or "").strip()
    model_id = str(body.get("modelId") or "").strip()
    benchmark_id = str(body.get("benchmarkId") or "").strip()
    if not provider or not model_id or not benchmark_id:
        return JSONResponse(
            {"error": "Invalid request", "details": "provider, modelId and benchmarkId are required"},
            status_code=400,
        )
    mock = body.get("mock", False)
    try:
        if not isinstance(mock, bool):
            raise ValueError("mock must be a boolean")
        run_config = EvalRunConfig(
            benchmark_id=benchmark_id,
            provider=provider,
            model_id=model_id,
            benchmark_version=body.get("benchmarkVersion"),
            test_case_ids=tuple(_opt_str_list(body, "testCaseIds")),
            tags=tuple(_opt_str_list(body, "tags")),
            org_id=body.get("orgId"),
            scope=body.get("scope") or "global",
        )
        parallelism = _opt_int(body, "parallelism", config.default_parallelism())
        retries = _opt_int(body, "retries", config.default_retries())
        timeout_ms = _opt_int(body, "timeoutMs", config.default_timeout_ms())
        seed = _opt_int(body, "seed", None)
        options_kwargs: Dict[str, Any] = dict(
            parallelism=parallelism,
            retries=retries,
            timeout_ms=timeout_ms,
            seed=seed,
            mock_mode=mock,
            retry_backoff_ms=config.retry_backoff_ms(),
        )
        RunnerOptions(**options_kwargs)
    except ValueError as e:
        return JSONResponse({"error": "Invalid request", "details": str(e)}, status_code=400)

    api_key = ""
    if not mock and provider in state.providers and requires_api_key(provider):
        api_key = resolve_api_key(provider, request.headers.get("X-API-Key"))
        if not api_key:
            return JSONResponse(
                {
                    "error": "API key required",
                    "details": f"Provide an API key in the X-API-Key header or set {provider.upper()}_API_KEY, "
                    "or use mock=true for testing",
                },
                status_code=401,
            )

    try:
        result = await state.runner.run_benchmark(run_config, RunnerOptions(api_key=api_key, **options_kwargs))
    except LookupError as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    except Exception as e:
        log_event(
            logger,
            "eval_request_failed",
            logging.ERROR,
            requestId=req_id,
            benchmarkId=benchmark_id,
            provider=provider,
            error=f"{type(e).__name__}: {e}",
        )
        return JSONResponse({"error": "Failed to run benchmark", "details": str(e)}, status_code=500)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Evaluations
# ---------------------------------------------------------------------------


@app.get("/api/v1/evaluations", tags=["evaluations"], description="Query evaluation runs, newest first.")
async def list_evaluations(
    request: Request,
    provider: Optional[str] = Query(None),
    modelId: Optional[str] = Query(None),
    benchmarkId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    orgId: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    rows = await _state(request).repository.query_evaluations(
        provider=provider,
        model_id=modelId,
        benchmark_id=benchmarkId,
        status=status,
        org_id=orgId,
        limit=limit,
        offset=offset,
    )
    summaries = [r.summary() for r in rows]
    return {"evaluations": summaries, "count": len(summaries), "limit": limit, "offset": offset}


@app.get(
    "/api/v1/evaluations/latest",
    tags=["evaluations"],
    description="Most recent completed evaluation for a provider/model/benchmark.",
)
async def latest_evaluation(
    request: Request,
    provider: str = Query(...),
    modelId: str = Query(...),
    benchmarkId: str = Query(...),
):
    record = await _state(request).repository.get_latest_evaluation(provider, modelId, benchmarkId)
    if record is None:
        return JSONResponse({"error": "Evaluation not found"}, status_code=404)
    return record.to_dict()


@app.get("/api/v1/evaluations/{evaluation_id}", tags=["evaluations"], description="Full evaluation run.")
async def get_evaluation(request: Request, evaluation_id: str):
    record = await _state(request).repository.get_evaluation(evaluation_id)
    if record is None:
        return JSONResponse({"error": "Evaluation not found"}, status_code=404)
    return record.to_dict()
