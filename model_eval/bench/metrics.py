"""Run-level aggregation over per-test-case results."""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence

from model_eval.bench.types import Aggregates, TestCase, TestCaseResult


def percentile(sorted_values: Sequence[int], p: float) -> int:
    """Nearest-rank percentile: index ``ceil(p/100 * n) - 1`` clamped to the sample."""
    n = len(sorted_values)
    if n == 0:
        return 0
    index = math.ceil((p / 100) * n) - 1
    return sorted_values[max(0, min(index, n - 1))]


def weight_map(test_cases: Iterable[TestCase]) -> Dict[str, float]:
    return {tc.id: (tc.weight or 1.0) for tc in test_cases}


def weighted_score(results: Sequence[TestCaseResult], weights: Optional[Dict[str, float]] = None) -> float:
    weights = weights or {}
    total_weight = 0.0
    total = 0.0
    for r in results:
        w = weights.get(r.test_case_id) or 1.0
        total_weight += w
        total += r.score * w
    return total / total_weight if total_weight > 0 else 0.0


def accuracy(results: Sequence[TestCaseResult]) -> float:
    if not results:
        return 0.0
    return sum(1 for r in results if r.passed) / len(results)


def measured_latencies(results: Iterable[TestCaseResult]) -> List[int]:
    """Sorted latencies, skipping 0 (not measured / failed before dispatch)."""
    return sorted(r.latency_ms for r in results if r.latency_ms > 0)


def compute_aggregates(
    results: Sequence[TestCaseResult],
    test_cases: Iterable[TestCase] = (),
) -> Aggregates:
    if not results:
        return Aggregates()
    latencies = measured_latencies(results)
    return Aggregates(
        overall_score=weighted_score(results, weight_map(test_cases)),
        accuracy=accuracy(results),
        latency_p50_ms=percentile(latencies, 50),
        latency_p95_ms=percentile(latencies, 95),
        latency_p99_ms=percentile(latencies, 99),
        total_input_tokens=sum(r.input_tokens for r in results),
        total_output_tokens=sum(r.output_tokens for r in results),
        # TODO: derive from provider pricing once per-model price data is available
        estimated_cost_cents=0.0,
    )
