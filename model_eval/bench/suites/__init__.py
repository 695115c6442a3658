"""Built-in benchmark suites.

Each suite module exposes ``BENCHMARKS``: a list of benchmark definitions in
their JSON (camelCase) form, parsed on load like any file-based benchmark.
"""
from __future__ import annotations

from typing import List

from model_eval.bench.types import BenchmarkDefinition

from . import code_review, function_calling, reasoning, routing

BUILTIN_SUITES = {
    "routing": routing.BENCHMARKS,
    "code_review": code_review.BENCHMARKS,
    "reasoning": reasoning.BENCHMARKS,
    "function_calling": function_calling.BENCHMARKS,
}


def builtin_benchmarks() -> List[BenchmarkDefinition]:
    out: List[BenchmarkDefinition] = []
    for definitions in BUILTIN_SUITES.values():
        out.extend(BenchmarkDefinition.from_dict(d) for d in definitions)
    return out
