"""Benchmark execution core.

Modules:
- types: benchmark, test case, and evaluation run data model
- dataset: load benchmark definitions from JSON/JSONL files
- catalog: benchmark registry keyed by id
- suites: built-in benchmark definitions
- schema: lenient JSON extraction + partial-credit schema validation
- evaluators: scoring functions and their registry
- simulate: synthetic results for mock mode
- metrics: aggregation utilities
- repository: evaluation record storage
- runner: batched execution with timeouts and retries
- report: Markdown report generator
"""
