from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from model_eval import config
from model_eval.bench.dataset import load_directory
from model_eval.bench.suites import builtin_benchmarks
from model_eval.bench.types import BenchmarkDefinition
from model_eval.log import get_logger, log_event

logger = get_logger(__name__)


class BenchmarkCatalog:
    """Benchmark definitions by id. Registering an existing id replaces it."""

    def __init__(self, benchmarks: Optional[Iterable[BenchmarkDefinition]] = None):
        self._benchmarks: Dict[str, BenchmarkDefinition] = {}
        if benchmarks:
            self.register_many(benchmarks)

    def register(self, benchmark: BenchmarkDefinition) -> None:
        if benchmark.id in self._benchmarks:
            log_event(logger, "benchmark_overwritten", logging.WARNING, benchmarkId=benchmark.id)
        self._benchmarks[benchmark.id] = benchmark
        log_event(
            logger,
            "benchmark_registered",
            logging.DEBUG,
            benchmarkId=benchmark.id,
            version=benchmark.version,
            testCases=len(benchmark.test_cases),
        )

    def register_many(self, benchmarks: Iterable[BenchmarkDefinition]) -> None:
        for b in benchmarks:
            self.register(b)

    def get(self, benchmark_id: str) -> Optional[BenchmarkDefinition]:
        return self._benchmarks.get(benchmark_id)

    def all(self) -> List[BenchmarkDefinition]:
        return list(self._benchmarks.values())

    def by_task_type(self, task_type: str) -> List[BenchmarkDefinition]:
        return [b for b in self._benchmarks.values() if b.task_type == task_type]

    def by_category(self, category: str) -> List[BenchmarkDefinition]:
        return [b for b in self._benchmarks.values() if b.category == category]

    def ids(self) -> List[str]:
        return list(self._benchmarks)

    def has(self, benchmark_id: str) -> bool:
        return benchmark_id in self._benchmarks

    def __contains__(self, benchmark_id: object) -> bool:
        return benchmark_id in self._benchmarks

    def __len__(self) -> int:
        return len(self._benchmarks)

    def summary(self) -> Dict[str, object]:
        by_task: Dict[str, int] = {}
        by_category: Dict[str, int] = {}
        for b in self._benchmarks.values():
            by_task[b.task_type] = by_task.get(b.task_type, 0) + 1
            by_category[b.category] = by_category.get(b.category, 0) + 1
        return {"total": len(self._benchmarks), "byTaskType": by_task, "byCategory": by_category}

    def clear(self) -> None:
        self._benchmarks.clear()


def load_builtin_benchmarks(catalog: BenchmarkCatalog) -> BenchmarkCatalog:
    catalog.register_many(builtin_benchmarks())
    summary = catalog.summary()
    log_event(logger, "builtin_benchmarks_loaded", total=summary["total"], byTaskType=summary["byTaskType"])
    return catalog


def build_catalog() -> BenchmarkCatalog:
    """Catalog for the service and CLI: built-ins (unless disabled) plus ``EVAL_BENCHMARKS_DIR``."""
    catalog = BenchmarkCatalog()
    if config.builtin_benchmarks_enabled():
        load_builtin_benchmarks(catalog)
    extra_dir = config.benchmarks_dir()
    if extra_dir:
        catalog.register_many(load_directory(extra_dir))
    return catalog
