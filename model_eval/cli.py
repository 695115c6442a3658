"""Command line entry point for running benchmarks locally.

Usage:
    model-eval list --task-type routing
    model-eval show routing.intent-classification
    model-eval run --benchmark reasoning.multi-step --provider mock --model mock-1 --mock --seed 7
    model-eval run -b function_calling.tool-selection -p mock -m mock-1 --report out/report.md
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import List, Optional

from model_eval import config
from model_eval.bench.catalog import BenchmarkCatalog, build_catalog
from model_eval.bench.dataset import load_directory
from model_eval.bench.report import render_markdown, write_report
from model_eval.bench.repository import InMemoryEvaluationRepository
from model_eval.bench.runner import BenchmarkRunner
from model_eval.bench.types import TASK_TYPES, DatasetError, EvalRunConfig, RunnerOptions, TestCaseResult
from model_eval.providers.factory import build_provider_registry, requires_api_key, resolve_api_key


def _catalog(args: argparse.Namespace) -> BenchmarkCatalog:
    catalog = build_catalog()
    for path in getattr(args, "benchmarks_dir", None) or []:
        catalog.register_many(load_directory(path))
    return catalog


def _split(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def cmd_list(args: argparse.Namespace) -> int:
    catalog = _catalog(args)
    benchmarks = catalog.by_task_type(args.task_type) if args.task_type else catalog.all()
    for b in benchmarks:
        print(f"{b.id:<40} {b.task_type:<18} {len(b.test_cases):>3} cases  {b.name}")
    summary = catalog.summary()
    print(f"\n{len(benchmarks)} of {summary['total']} benchmarks")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    benchmark = _catalog(args).get(args.benchmark_id)
    if benchmark is None:
        print(f"Error: benchmark not found: {args.benchmark_id}", file=sys.stderr)
        return 1
    print(json.dumps(benchmark.to_dict(), indent=2))
    return 0


def _print_progress(completed: int, total: int, last: Optional[TestCaseResult]) -> None:
    mark = ""
    if last is not None:
        mark = f"  {last.test_case_id}: {'pass' if last.passed else 'fail'} ({last.score:.2f})"
    print(f"[{completed}/{total}]{mark}", file=sys.stderr)


def cmd_run(args: argparse.Namespace) -> int:
    catalog = _catalog(args)
    providers = build_provider_registry()
    runner = BenchmarkRunner(catalog, providers, InMemoryEvaluationRepository())

    api_key = ""
    if not args.mock and requires_api_key(args.provider):
        api_key = resolve_api_key(args.provider, args.api_key)
        if not api_key:
            env_name = config.PROVIDER_API_KEY_ENV.get(args.provider.lower(), f"{args.provider.upper()}_API_KEY")
            print(f"Error: API key required: pass --api-key, set {env_name}, or use --mock", file=sys.stderr)
            return 2

    try:
        run_config = EvalRunConfig(
            benchmark_id=args.benchmark,
            provider=args.provider,
            model_id=args.model,
            test_case_ids=tuple(_split(args.test_case_ids)),
            tags=tuple(_split(args.tags)),
        )
        options = RunnerOptions(
            parallelism=args.parallelism,
            timeout_ms=args.timeout_ms,
            retries=args.retries,
            seed=args.seed,
            api_key=api_key or None,
            on_progress=None if args.quiet else _print_progress,
            mock_mode=args.mock,
            retry_backoff_ms=config.retry_backoff_ms(),
        )
    except ValueError as e:
        print(f"Error: invalid option: {e}", file=sys.stderr)
        return 2

    try:
        result = asyncio.run(runner.run_benchmark(run_config, options))
    except LookupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    agg = result.aggregates
    print(f"\n{'=' * 60}")
    print(f"Benchmark: {result.benchmark_id} v{result.benchmark_version}")
    print(f"Model:     {result.provider}/{result.model_id}")
    print(f"Score:     {agg.overall_score:.4f}")
    print(f"Accuracy:  {agg.accuracy:.4f}")
    print(f"Latency:   p50={agg.latency_p50_ms}ms p95={agg.latency_p95_ms}ms p99={agg.latency_p99_ms}ms")
    print(f"Tokens:    in={agg.total_input_tokens} out={agg.total_output_tokens}")
    print(f"{'=' * 60}\n")

    if args.output:
        os.makedirs(os.path.dirname(os.path.abspath(args.output)), exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, default=str)
        print(f"Saved results to {args.output}")
    if args.report:
        write_report(result, args.report)
        print(f"Saved report to {args.report}")
    elif args.print_report:
        print(render_markdown(result))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="model-eval",
        description="Run benchmark suites against LLM providers and score the results.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--benchmarks-dir",
        action="append",
        default=None,
        help="Extra directory of JSON/JSONL benchmark files (repeatable).",
    )

    list_parser = sub.add_parser("list", parents=[common], help="List registered benchmarks.")
    list_parser.add_argument("--task-type", choices=TASK_TYPES, default=None)
    list_parser.set_defaults(func=cmd_list)

    show_parser = sub.add_parser("show", parents=[common], help="Print a benchmark definition as JSON.")
    show_parser.add_argument("benchmark_id")
    show_parser.set_defaults(func=cmd_show)

    run_parser = sub.add_parser("run", parents=[common], help="Run a benchmark and print aggregates.")
    run_parser.add_argument("--benchmark", "-b", required=True)
    run_parser.add_argument("--provider", "-p", default="mock")
    run_parser.add_argument("--model", "-m", required=True)
    run_parser.add_argument("--mock", action="store_true", help="Synthesize results without calling the provider.")
    run_parser.add_argument("--parallelism", type=int, default=config.default_parallelism())
    run_parser.add_argument("--timeout-ms", type=int, default=config.default_timeout_ms())
    run_parser.add_argument("--retries", type=int, default=config.default_retries())
    run_parser.add_argument("--seed", type=int, default=None)
    run_parser.add_argument("--tags", default=None, help="Comma-separated tags; keep cases sharing any.")
    run_parser.add_argument("--test-case-ids", default=None, help="Comma-separated test case ids.")
    run_parser.add_argument("--api-key", default=None)
    run_parser.add_argument("--output", "-o", default=None, help="Write the evaluation result as JSON.")
    run_parser.add_argument("--report", default=None, help="Write a Markdown report.")
    run_parser.add_argument("--print-report", action="store_true", help="Print the Markdown report.")
    run_parser.add_argument("--quiet", "-q", action="store_true", help="No per-batch progress on stderr.")
    run_parser.set_defaults(func=cmd_run)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (DatasetError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
